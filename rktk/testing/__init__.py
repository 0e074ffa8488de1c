"""
    Test problems written with plain array arithmetic, so they evaluate
    at the precision of whatever vector space they are defined on.
"""
import numpy

from rktk.base import Problem

class ChiSquareProblem(Problem):
    """
        chisquare problem with

        y = |J x - 1.0|^2
    """
    def __init__(self, vs=None, J=None, dimension=None):
        if J is None:
            if dimension is None:
                dimension = 4
            # upper bidiagonal, well conditioned
            J = 2 * numpy.eye(dimension) + numpy.eye(dimension, k=1)

        J = numpy.asarray(J, dtype='f8')
        self.J = J

        def objective(x):
            r = J.dot(x) - 1
            return numpy.sum(r * r)

        def gradient(x):
            r = J.dot(x) - 1
            return 2 * r.dot(J)

        Problem.__init__(self,
                      objective=objective,
                      gradient=gradient,
                      vs=vs,
                      dimension=J.shape[1])

    def solution(self):
        """ the least squares solution, in float64 """
        return numpy.linalg.lstsq(self.J, numpy.ones(self.J.shape[0]), rcond=None)[0]

class RosenProblem(Problem):
    """ RosenBrock problem; the minimum is at x = 1 where y = 0. """
    def __init__(self, vs=None, dimension=8):
        if dimension < 2:
            raise ValueError("the Rosenbrock problem needs at least two dimensions")

        def objective(x):
            return numpy.sum(100 * (x[1:] - x[:-1] ** 2) ** 2 + (1 - x[:-1]) ** 2)

        def gradient(x):
            xm = x[1:-1]
            xm_m1 = x[:-2]
            xm_p1 = x[2:]
            der = self.vs.zeros(len(x))
            der[1:-1] = (200 * (xm - xm_m1 ** 2)
                         - 400 * (xm_p1 - xm ** 2) * xm - 2 * (1 - xm))
            der[0] = -400 * x[0] * (x[1] - x[0] ** 2) - 2 * (1 - x[0])
            der[-1] = 200 * (x[-1] - x[-2] ** 2)
            return der

        Problem.__init__(self, objective=objective, gradient=gradient,
                    vs=vs, dimension=dimension)
