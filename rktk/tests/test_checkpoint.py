import os
import uuid

import numpy
import pytest

from rktk import checkpoint
from rktk.base import State
from rktk.bfgs import BFGS
from rktk.checkpoint import CheckpointError
from rktk.testing import ChiSquareProblem
from rktk.vectorspace import MPFRVectorSpace, real_vector_space

def make_state(vs, values, nit=7):
    state = State()
    state.x = vs.zeros(len(values))
    for i, v in enumerate(values):
        state.x[i] = vs.scalar(v)
    with vs.local():
        state.xnorm = vs.norm(state.x)
        state.y = vs.scalar(1) / 3
        state.gnorm = vs.ldexp(vs.scalar(1), -10)
    state.rate = vs.ldexp(vs.scalar(1), -10)
    state.nit = nit
    state.run_id = checkpoint.new_run_id(numpy.random.default_rng(0))
    return state

def test_parse_filename():
    name = '0102-0304-RKTK-0000002A-0003-0004-0005-000000000006-000000000042.txt'
    nit, run_id = checkpoint.parse_filename(name)
    assert nit == 42
    assert run_id.time_low == 0x2A
    assert run_id.time_mid == 0x3
    assert run_id.time_hi_version == 0x4
    assert run_id.clock_seq == 0x5
    assert run_id.node == 0x6

    nit, run_id2 = checkpoint.parse_filename(os.path.join('some', 'dir', name.replace('2A', '2a')))
    assert run_id2 == run_id

@pytest.mark.parametrize("name", [
    'start.txt',
    '0102-0304-RKTK-0000002A-0003-0004-0005-000000000006-000000000042.dat',
    '0102-0304-XXXX-0000002A-0003-0004-0005-000000000006-000000000042.txt',
    '102-0304-RKTK-0000002A-0003-0004-0005-000000000006-000000000042.txt',
    '0102-0304-RKTK-0000002G-0003-0004-0005-000000000006-000000000042.txt',
    '0102-0304-RKTK-0000002A-0003-0004-0005-000000000006-00000000042.txt',
    'x0102-0304-RKTK-0000002A-0003-0004-0005-000000000006-000000000042.txt',
])
def test_parse_filename_mismatch(name):
    assert checkpoint.parse_filename(name) is None

def test_format_filename():
    run_id = uuid.UUID('0000002a-0003-0004-0005-000000000006')
    name = checkpoint.format_filename(0.5, 1e-3, run_id, 42)
    assert name == '0030-0300-RKTK-0000002A-0003-0004-0005-000000000006-000000000042.txt'
    assert len(name) == 68
    assert checkpoint.parse_filename(name) == (42, run_id)

@pytest.mark.parametrize("value, expected", [
    (1e-3, 300),
    # truncated toward zero, not rounded
    (10 ** -3.007, 300),
    (10 ** -2.995, 299),
    (0.5, 30),
    (1.0, 0),
    (2.0, 0),
    (0.0, 9999),
    (1e-200, 9999),
    (float('nan'), 0),
])
def test_score(value, expected):
    assert checkpoint.score(value) == expected

def test_score_mpfr():
    vs = MPFRVectorSpace(256)
    assert checkpoint.score(vs.scalar('1e-5')) == 500
    # below the float64 range
    assert checkpoint.score(vs.scalar('1e-400')) == 9999

def test_new_run_id():
    a = checkpoint.new_run_id(numpy.random.default_rng(3))
    b = checkpoint.new_run_id(numpy.random.default_rng(3))
    assert isinstance(a, uuid.UUID)
    assert a == b
    assert checkpoint.new_run_id() != checkpoint.new_run_id()

def test_default_digits():
    assert checkpoint.default_digits(real_vector_space) == 17
    assert checkpoint.default_digits(MPFRVectorSpace(256)) == 79

def test_write_read(tmp_path):
    vs = MPFRVectorSpace(256)
    with vs.local():
        values = [vs.scalar(1) / 7, -vs.scalar(2) / 3, vs.ldexp(vs.scalar(1), -200)]
    state = make_state(vs, values, nit=1234)

    path = checkpoint.write(vs, state, str(tmp_path))
    name = os.path.basename(path)
    assert len(name) == 68
    assert name.startswith('0047-0301-RKTK-')
    assert checkpoint.parse_filename(path) == (1234, state.run_id)

    x = checkpoint.read_point(vs, path, 3)
    assert vs.equal(x, state.x)
    assert x[0].precision == 256

def test_body_layout(tmp_path):
    vs = MPFRVectorSpace(64)
    state = make_state(vs, [0.5, -0.25])
    path = checkpoint.write(vs, state, str(tmp_path))

    with open(path) as ff:
        lines = ff.read().split('\n')

    assert lines[0] == '+5.' + '0' * 21 + 'e-01'
    assert lines[1] == '-2.5' + '0' * 20 + 'e-01'
    assert lines[2] == ''
    assert lines[3].startswith('Objective function value: +3.333')
    assert lines[4] == 'Objective gradient norm:  +9.765625' + '0' * 15 + 'e-04'
    assert lines[5] == 'Most recent step size:    +9.765625' + '0' * 15 + 'e-04'
    assert lines[6].startswith('Distance from origin:     +5.590')
    assert lines[7] == ''
    assert len(lines) == 8
    assert os.listdir(str(tmp_path)) == [os.path.basename(path)]

def test_read_plain_file(tmp_path):
    path = tmp_path / 'start.txt'
    path.write_text('0.5 0.25\n  -1e-2\n\nignored 1 2\n')

    x = checkpoint.read_point(real_vector_space, str(path))
    assert list(x) == [0.5, 0.25, -0.01]

    x = checkpoint.read_point(real_vector_space, str(path), 2)
    assert list(x) == [0.5, 0.25]

def test_read_errors(tmp_path):
    with pytest.raises(CheckpointError) as e:
        checkpoint.read_point(real_vector_space, str(tmp_path / 'missing.txt'))
    assert e.value.path.endswith('missing.txt')

    short = tmp_path / 'short.txt'
    short.write_text('1.0\n2.0\n')
    with pytest.raises(CheckpointError) as e:
        checkpoint.read_point(real_vector_space, str(short), 3)
    assert e.value.index == 2

    bad = tmp_path / 'bad.txt'
    bad.write_text('1.0\nabc\n3.0\n')
    with pytest.raises(CheckpointError) as e:
        checkpoint.read_point(MPFRVectorSpace(64), str(bad), 3)
    assert e.value.index == 1

    empty = tmp_path / 'empty.txt'
    empty.write_text('\n1.0\n')
    with pytest.raises(CheckpointError) as e:
        checkpoint.read_point(real_vector_space, str(empty))
    assert e.value.index == 0

@pytest.mark.parametrize("cut", [
    lambda text: text.index('\n', text.index('\n') + 1) + 8, # inside the third coordinate
    lambda text: text.index('\n\n') + 1,                      # before the summary block
    lambda text: len(text) - 1,                               # last newline missing
])
def test_truncated_checkpoint(tmp_path, cut):
    vs = MPFRVectorSpace(64)
    problem = ChiSquareProblem(vs, dimension=3)
    state = make_state(vs, ['0.125', '0.25', '0.144159665751801779196'], nit=2)
    path = checkpoint.write(vs, state, str(tmp_path))

    with open(path) as ff:
        text = ff.read()
    with open(path, 'w') as ff:
        ff.write(text[:cut(text)])

    with pytest.raises(CheckpointError) as e:
        checkpoint.read_point(vs, path, 3)
    assert e.value.path == path

    with pytest.raises(CheckpointError):
        BFGS().resume(problem, path)

def test_truncated_plain_file_is_read(tmp_path):
    # without a checkpoint name there is no summary block to check
    path = tmp_path / 'start.txt'
    path.write_text('0.125\n0.25')
    x = checkpoint.read_point(real_vector_space, str(path), 2)
    assert list(x) == [0.125, 0.25]
