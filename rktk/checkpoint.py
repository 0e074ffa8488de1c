"""
    Checkpoint files.

    A checkpoint is named

        FFFF-GGGG-RKTK-AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE-IIIIIIIIIIII.txt

    where FFFF and GGGG score the objective value and the gradient norm
    (-100 log10 of the value, clamped to 0..9999), the hex groups are the run
    identifier and IIIIIIIIIIII is the iteration counter. The body is one
    coordinate per line, a blank line and four labelled summary lines.

    Any other file name is read as a plain coordinate file.
"""
import logging
import math
import os
import re
import uuid

import numpy

logger = logging.getLogger(__name__)

FILENAME = re.compile(
    r'([0-9]{4})-([0-9]{4})-RKTK-'
    r'([0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12})-'
    r'([0-9]{12})\.txt')

SUMMARY = [
    ('Objective function value: ', 'y'),
    ('Objective gradient norm:  ', 'gnorm'),
    ('Most recent step size:    ', 'rate'),
    ('Distance from origin:     ', 'xnorm'),
]

class CheckpointError(ValueError):
    def __init__(self, message, path=None, index=None):
        self.path = path
        self.index = index
        ValueError.__init__(self, message)

def new_run_id(rng=None):
    """ A random 128 bit run identifier.

        rng is a numpy Generator; the default one is seeded from the
        operating system entropy pool.
    """
    if rng is None:
        rng = numpy.random.default_rng()
    return uuid.UUID(bytes=rng.bytes(16))

def default_digits(vs):
    """ Digits after the point needed to write a scalar of vs without loss. """
    return int(vs.precision * math.log10(2)) + 2

def score(value):
    """ -100 log10(value), truncated and clamped to 0..9999. """
    v = float(value)
    if math.isnan(v) or v < 0:
        return 0
    if v == 0:
        return 9999
    s = -100 * math.log10(v)
    if s <= 0:
        return 0
    if s >= 9999:
        return 9999
    return int(s)

def format_filename(y, gnorm, run_id, nit):
    return '%04d-%04d-RKTK-%s-%012d.txt' % (
        score(y), score(gnorm), str(run_id).upper(), nit)

def parse_filename(path):
    """ Returns (nit, run_id) recovered from a checkpoint file name,
        or None if the name does not follow the checkpoint grammar.
    """
    m = FILENAME.fullmatch(os.path.basename(path))
    if m is None:
        return None
    return int(m.group(4)), uuid.UUID(m.group(3))

def write(vs, state, directory='.', digits=None):
    """ Write the current point of state; returns the path of the file.

        The body goes to a temporary file in the same directory first, so a
        checkpoint name never refers to a partially written file.
    """
    if digits is None:
        digits = default_digits(vs)

    path = os.path.join(directory,
            format_filename(state.y, state.gnorm, state.run_id, state.nit))
    tmppath = path + '.tmp'

    with open(tmppath, 'w') as ff:
        for xi in state.x:
            ff.write(vs.format(xi, digits) + '\n')
        ff.write('\n')
        for label, key in SUMMARY:
            ff.write(label + vs.format(state[key], digits) + '\n')

    os.replace(tmppath, path)
    logger.debug("wrote checkpoint %s", path)
    return path

def read_point(vs, path, dimension=None):
    """ Read the coordinates of a checkpoint or of a plain coordinate file.

        Coordinates are whitespace separated and end at the first blank
        line. If dimension is given, exactly the first `dimension`
        coordinates are used. A file named as a checkpoint must also carry
        the complete summary block.
    """
    try:
        with open(path, 'r') as ff:
            lines = ff.readlines()
    except OSError as e:
        raise CheckpointError("could not open input file %s: %s" % (path, e), path=path)

    tokens = []
    summary = None
    for i, line in enumerate(lines):
        if not line.strip():
            summary = lines[i + 1:]
            break
        tokens.extend(line.split())

    if parse_filename(path) is not None and not _complete_summary(summary):
        raise CheckpointError("checkpoint file %s is truncated" % path,
                path=path, index=len(tokens))

    if dimension is not None:
        if len(tokens) < dimension:
            raise CheckpointError("could not read input file entry at index %d" % len(tokens),
                    path=path, index=len(tokens))
        tokens = tokens[:dimension]

    if len(tokens) == 0:
        raise CheckpointError("no coordinates in input file %s" % path, path=path, index=0)

    x = vs.zeros(len(tokens))
    for i, token in enumerate(tokens):
        try:
            x[i] = vs.scalar(token)
        except ValueError:
            raise CheckpointError("could not read input file entry at index %d" % i,
                    path=path, index=i)
    return x

def _complete_summary(lines):
    # every label present, and the last line terminated
    if lines is None or len(lines) < len(SUMMARY):
        return False
    for line, (label, key) in zip(lines, SUMMARY):
        if not line.startswith(label):
            return False
    return lines[len(SUMMARY) - 1].endswith('\n')
