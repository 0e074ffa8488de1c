# expose optimization algorithms
from .bfgs import BFGS
from .hessian import BFGSUpdate, ModifiedBFGSUpdate
from .linesearch import QuadraticLineSearcher

# expose common vector spaces
from .vectorspace import real_vector_space
from .vectorspace import RealVectorSpace, MPFRVectorSpace

# providing base classes here
# for external subclassing

from .base import VectorSpace
from .base import State
from .base import Problem
from .base import NumericalFault
from .checkpoint import CheckpointError

from .version import __version__

def minimize(optimizer, objective, gradient, x0, monitor=None, vs=real_vector_space):

    problem = Problem(objective, gradient, vs=vs, dimension=len(x0))

    state = optimizer.start(problem, x0)
    return optimizer.minimize(problem, state, monitor=monitor)
