"""
    A dense BFGS quasi-Newton method for arbitrary precision problems.

    The approximate inverse Hessian starts as the identity, and is corrected
    by a rank two update (`rktk.hessian`) after every accepted step. Step sizes
    are chosen by the quadratic line search in `rktk.linesearch`, starting
    from the previously accepted step size.

    When the line search cannot move along the quasi-Newton direction, the
    inverse Hessian is reset and the search is retried once along the steepest
    descent direction. If that cannot move either, the step size has
    underflowed the working precision and the run has converged.
"""
import logging
import time

import numpy

from rktk.base import Optimizer, State
from rktk.base import ContinueIteration, ConvergedIteration
from rktk.base import NumericalFault
from rktk.linesearch import QuadraticLineSearcher
from rktk.hessian import BFGSUpdate
from rktk import checkpoint

logger = logging.getLogger(__name__)

class BFGS(Optimizer):
    optimizer_defaults = {
        'maxiter' : None,
        'linesearch' : QuadraticLineSearcher,
        'maxdoubling' : 4,
        'hessian_update' : BFGSUpdate,
        'initial_rate' : None,
        'low' : 0.0,
        'high' : 1.0,
    }

    def get_initial_rate(self, problem):
        """ The first step size of a run, 2 ** -(precision / 2) by default. """
        vs = problem.vs
        if self.initial_rate is not None:
            return vs.scalar(self.initial_rate)
        return vs.ldexp(vs.scalar(1), -(vs.precision // 2))

    def start(self, problem, x0, nit=0, run_id=None):
        """ A new state at x0, with an identity inverse Hessian and zero step size. """
        vs = problem.vs
        n = len(x0)

        if problem.dimension is not None and problem.dimension != n:
            raise ValueError("expecting a point of dimension %d, got %d" % (problem.dimension, n))

        state = State()
        state.x = vs.copy(x0)
        with vs.local():
            state.xnorm = vs.norm(state.x)
        state.y = problem.f(state.x)
        state.g = problem.g(state.x)
        with vs.local():
            state.gnorm = vs.norm(state.g)
        state.fev = 1
        state.gev = 1
        state.rate = vs.scalar(0)
        state.hinv = vs.identity(n)
        state.nit = nit
        state.run_id = checkpoint.new_run_id() if run_id is None else run_id

        # per-run workspaces
        state.searcher = self.linesearch(vs, problem.f, n, maxdoubling=self.maxdoubling)
        state.update = self.hessian_update(vs, n)

        if vs.isnan(state.y) or vs.isnan(state.g) or vs.isnan(state.gnorm):
            raise NumericalFault("after workspace initialization")
        return state

    def random_start(self, problem, n=None, rng=None):
        """ Start from coordinates drawn uniformly from [low, high).

            rng is a numpy Generator, by default seeded from the operating
            system entropy pool. The run identifier is drawn from it as well.
        """
        vs = problem.vs
        if n is None:
            n = problem.dimension
        if n is None:
            raise ValueError("the dimension of the problem is unknown")
        if rng is None:
            rng = numpy.random.default_rng()

        x0 = vs.zeros(n)
        for i in range(n):
            x0[i] = vs.scalar(rng.uniform(self.low, self.high))

        return self.start(problem, x0, nit=0, run_id=checkpoint.new_run_id(rng))

    def resume(self, problem, path):
        """ Start from the point stored in a file.

            The iteration counter and the run identifier are recovered from
            checkpoint file names; other files start a new run at iteration 0.
        """
        logger.info("Opening input file '%s'...", path)
        x0 = checkpoint.read_point(problem.vs, path, problem.dimension)
        logger.info("Successfully read input file.")

        meta = checkpoint.parse_filename(path)
        if meta is None:
            return self.start(problem, x0)

        nit, run_id = meta
        return self.start(problem, x0, nit=nit, run_id=run_id)

    def direction(self, problem, z, stage):
        """ -z / |z|. """
        vs = problem.vs
        with vs.local():
            znorm = vs.norm(z)
            if znorm == 0 or not vs.isfinite(znorm):
                raise NumericalFault(stage)
            return vs.addmul(0, z, -1 / znorm)

    def step(self, problem, state):
        vs = problem.vs
        n = len(state.x)

        if vs.isnan(state.y) or vs.isnan(state.g):
            raise NumericalFault("before performing BFGS iteration")

        if state.gnorm == 0:
            # an exact stationary point; there is no direction to search along.
            return self._converged(problem, state, "gradient vanished")

        with vs.local():
            z = vs.matvec(state.hinv, state.g)
        if vs.isnan(z):
            raise NumericalFault("during calculation of BFGS step direction")
        d = self.direction(problem, z, "during normalization of BFGS step direction")

        rate0 = state.rate if state.rate != 0 else self.get_initial_rate(problem)
        step_type = 'BFGS'
        reset = False
        fell_back = False

        while True:
            rate, y = state.searcher.search(state.x, state.y, d, rate0)
            state.fev = state.fev + state.searcher.fev

            if rate == 0:
                if reset:
                    return self._converged(problem, state)
                logger.debug("iteration %d: no progress along the BFGS direction, "
                             "resetting the inverse Hessian", state.nit)
                state.hinv = vs.identity(n)
                d = self.direction(problem, state.g, "during normalization of gradient direction")
                step_type = 'GRAD'
                reset = True
                continue

            x_new = vs.axpy(vs.zeros(n), rate, d, state.x)
            y_new = problem.f(x_new)
            state.fev = state.fev + 1
            if vs.isnan(y_new):
                raise NumericalFault("during evaluation of objective function at new point")

            if y_new < state.y:
                break

            # the objective did not reproduce the decrease; renegotiate the initial step.
            if state.rate != 0 and rate > state.rate and not fell_back:
                rate0 = state.rate
                fell_back = True
            else:
                with vs.local():
                    rate0 = vs.ldexp(min(rate, rate0), -1)

        g_new = problem.g(x_new)
        state.gev = state.gev + 1
        if vs.isnan(g_new):
            raise NumericalFault("during evaluation of objective gradient at new point")

        with vs.local():
            gnorm_new = vs.norm(g_new)
            xnorm_new = vs.norm(x_new)
        if vs.isnan(gnorm_new):
            raise NumericalFault("while evaluating norm of objective gradient")

        dg = vs.addmul(g_new, state.g, -1)
        if vs.isnan(dg):
            raise NumericalFault("while subtracting consecutive gradient vectors")

        state.update(state.hinv, dg, rate, d, y0=state.y, y1=y_new, g0=state.g)
        if vs.isnan(state.hinv):
            raise NumericalFault("while updating approximate inverse Hessian")

        state.x_new = x_new
        state.y_new = y_new
        state.g_new = g_new
        state.gnorm_new = gnorm_new
        state.xnorm_new = xnorm_new
        state.rate_new = rate
        state.step_type = step_type

        if step_type == 'BFGS':
            return ContinueIteration("BFGS step")
        return ContinueIteration("gradient step")

    def _converged(self, problem, state, message="step size reduced to zero"):
        # no motion: the candidate is the current point
        state.x_new = state.x
        state.y_new = state.y
        state.g_new = state.g
        state.gnorm_new = state.gnorm
        state.xnorm_new = state.xnorm
        state.rate_new = problem.vs.scalar(0)
        state.step_type = 'NONE'
        logger.info("%s; BFGS iteration has converged to the requested precision.",
                    message.capitalize())
        return ConvergedIteration(message)

    def shift(self, problem, state):
        if not self.decreased(problem, state):
            raise RuntimeError("shift() requires a step that strictly decreased the objective")

        state.x = state.x_new
        state.y = state.y_new
        state.g = state.g_new
        state.gnorm = state.gnorm_new
        state.xnorm = state.xnorm_new
        state.rate = state.rate_new
        state.nit = state.nit + 1
        state.wallclock = time.time() - state.timestamp
        state.timestamp = time.time()

        state.x_new = None
        state.y_new = None
        state.g_new = None
        state.gnorm_new = None
        state.xnorm_new = None
        state.rate_new = None
