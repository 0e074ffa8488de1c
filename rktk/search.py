"""Command line interface to run a BFGS search with periodic checkpoints."""

import argparse
import importlib
import logging
import os
import sys
import time

import numpy

from rktk.base import NumericalFault
from rktk.bfgs import BFGS
from rktk.hessian import BFGSUpdate, ModifiedBFGSUpdate
from rktk.vectorspace import MPFRVectorSpace, ROUNDING_MODES
from rktk import checkpoint

logger = logging.getLogger(__name__)

HESSIAN_UPDATES = {
    'bfgs' : BFGSUpdate,
    'modified' : ModifiedBFGSUpdate,
}

class ProgressMonitor(object):
    """ Prints a progress line every `print_period` seconds and writes a
        checkpoint every `checkpoint_every` iterations.
    """
    def __init__(self, vs, directory='.', checkpoint_every=100, print_period=0.5,
                 print_precision=0, stream=None, clock=time.monotonic):
        if print_precision <= 0:
            print_precision = checkpoint.default_digits(vs)
        self.vs = vs
        self.directory = directory
        self.checkpoint_every = checkpoint_every
        self.print_period = print_period
        self.print_precision = print_precision
        self.stream = stream
        self.clock = clock
        self.last_print = None

    def report(self, state):
        print(state.format(digits=self.print_precision), file=self.stream or sys.stdout)
        self.last_print = self.clock()

    def write(self, state):
        path = checkpoint.write(self.vs, state, self.directory)
        logger.info("checkpoint %s", os.path.basename(path))
        return path

    def __call__(self, state):
        if self.checkpoint_every and state.nit % self.checkpoint_every == 0:
            self.write(state)
        if self.last_print is None or self.clock() - self.last_print >= self.print_period:
            self.report(state)

def search(optimizer, problem, state, monitor=None):
    """ Minimize from state until the step size underflows the working precision.

        A checkpoint is written at the start, periodically by the monitor, and at
        termination. Returns the final state.
    """
    if monitor is None:
        monitor = ProgressMonitor(problem.vs)

    monitor.report(state)
    monitor.write(state)

    optimizer.minimize(problem, state, monitor=monitor)

    monitor.report(state)
    if state.converged:
        logger.info("Located candidate local minimum.")
    monitor.write(state)
    return state

def load_problem(target, vs, dimension=None):
    """ Make a problem from a 'module:callable' target; the callable receives vs
        and, if given, dimension.
    """
    if ':' not in target:
        raise ValueError("expecting a problem as 'module:callable', got %r" % target)
    modname, name = target.split(':', 1)
    factory = getattr(importlib.import_module(modname), name)
    if dimension is None:
        return factory(vs)
    return factory(vs, dimension=dimension)

def _positive_int(value):
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError("expecting a positive integer, got %s" % value)
    return ivalue

def _non_negative_int(value):
    ivalue = int(value)
    if ivalue < 0:
        raise argparse.ArgumentTypeError("expecting a non-negative integer, got %s" % value)
    return ivalue

def _non_negative_float(value):
    fvalue = float(value)
    if not (0 <= fvalue < float('inf')):
        raise argparse.ArgumentTypeError("expecting a finite non-negative number, got %s" % value)
    return fvalue

def _configure_logging(verbose):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

def make_parser():
    parser = argparse.ArgumentParser(prog='rktk-search',
            description="Search for a local minimum with arbitrary precision BFGS, "
                        "writing checkpoints to the working directory.")
    parser.add_argument("precision", nargs='?', type=_positive_int, default=53,
            help="Number of bits of precision of every scalar")
    parser.add_argument("print_period", nargs='?', type=_non_negative_float, default=0.5,
            help="Seconds between progress lines")
    parser.add_argument("print_precision", nargs='?', type=_non_negative_int, default=0,
            help="Digits of progress lines; 0 to print at the working precision")
    parser.add_argument("resume", nargs='?', default=None,
            help="Checkpoint or coordinate file to start from; a random point if omitted")
    parser.add_argument("--problem", default="rktk.testing:RosenProblem",
            help="Objective function as 'module:callable'")
    parser.add_argument("--dimension", type=_positive_int, default=None,
            help="Dimension passed to the problem factory")
    parser.add_argument("--hessian-update", choices=sorted(HESSIAN_UPDATES), default='bfgs',
            help="Inverse Hessian update")
    parser.add_argument("--rounding", choices=sorted(ROUNDING_MODES), default='nearest',
            help="Rounding mode of every operation")
    parser.add_argument("--directory", default='.',
            help="Directory where checkpoints are written")
    parser.add_argument("--checkpoint-every", type=_positive_int, default=100,
            help="Iterations between checkpoints")
    parser.add_argument("--maxiter", type=_positive_int, default=None,
            help="Stop after this many iterations")
    parser.add_argument("--seed", type=int, default=None,
            help="Seed of the random starting point; operating system entropy if omitted")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser

def main(argv=None):
    args = make_parser().parse_args(argv)
    _configure_logging(args.verbose)

    vs = MPFRVectorSpace(args.precision, args.rounding)
    problem = load_problem(args.problem, vs, args.dimension)
    optimizer = BFGS(hessian_update=HESSIAN_UPDATES[args.hessian_update],
                     maxiter=args.maxiter)
    monitor = ProgressMonitor(vs, directory=args.directory,
                              checkpoint_every=args.checkpoint_every,
                              print_period=args.print_period,
                              print_precision=args.print_precision)

    try:
        if args.resume is not None:
            state = optimizer.resume(problem, args.resume)
        else:
            state = optimizer.random_start(problem, rng=numpy.random.default_rng(args.seed))
        search(optimizer, problem, state, monitor)
    except NumericalFault as e:
        logger.error("INTERNAL ERROR: %s", e)
        return 1
    except checkpoint.CheckpointError as e:
        logger.error("ERROR: %s", e)
        return 1
    except OSError as e:
        logger.error("ERROR: could not write checkpoint: %s", e)
        return 1
    return 0

if __name__ == '__main__':
    sys.exit(main())
