"""
    One dimensional searches along a ray x0 + t * dx.

    The searcher only ever compares objective values; it never looks at the
    magnitude of the direction. The best (value, rate) pair seen anywhere
    during one search is what is returned.
"""
from rktk.base import NumericalFault

class QuadraticLineSearcher(object):
    """ Geometric bracketing followed by a three point quadratic fit.

        If the initial rate improves on f0, the rate is doubled while the
        objective keeps decreasing (at most `maxdoubling` times); otherwise
        it is halved until the objective improves on f0, or until the trial
        point is identical to x0 at the working precision.

        The searcher is made once per run; the trial point buffer is reused
        by every search.

        Parameters
        ----------
        vs : VectorSpace
        objective : function(x)
            evaluated on the reused trial buffer; it shall not keep a
            reference to its argument.
        n : int
            dimension of the vectors.
        maxdoubling : int
    """
    def __init__(self, vs, objective, n, maxdoubling=4):
        self.vs = vs
        self.objective = objective
        self.maxdoubling = maxdoubling
        self.xt = vs.zeros(n)
        self.fev = 0

        self.x0 = None
        self.f0 = None
        self.dx = None
        self.best_y = None
        self.best_rate = None

    def evaluate(self, t):
        """ Objective at x0 + t * dx; returns (y, changed).

            If the trial point equals x0 the objective is not evaluated and f0
            is reused.
        """
        vs = self.vs
        xt = vs.axpy(self.xt, t, self.dx, self.x0)
        if vs.equal(xt, self.x0):
            return self.f0, False

        y = self.objective(xt)
        self.fev = self.fev + 1

        if vs.isnan(y):
            raise NumericalFault("during quadratic line search")

        if y < self.best_y:
            self.best_y = y
            self.best_rate = t
        return y, True

    def search(self, x0, f0, dx, rate):
        """ Search along x0 + t * dx starting from t = rate.

            Returns
            -------
            rate, y : the best rate seen, and the objective there.
                rate is zero if no point better than f0 has been found.
        """
        vs = self.vs
        self.x0 = x0
        self.f0 = f0
        self.dx = dx
        self.best_y = f0
        self.best_rate = vs.scalar(0)
        self.fev = 0

        with vs.local():
            f1, changed = self.evaluate(rate)

            if f1 < f0:
                self._expand(rate, f1)
            else:
                self._contract(rate, f1)

        return self.best_rate, self.best_y

    def _expand(self, h, f1):
        vs = self.vs
        f0 = self.f0
        ndoubling = 0
        while True:
            h2 = vs.ldexp(h, 1)
            f2, changed = self.evaluate(h2)
            if f2 >= f1:
                break
            h, f1 = h2, f2
            ndoubling = ndoubling + 1
            if ndoubling >= self.maxdoubling:
                return

        # quadratic through (0, f0), (h, f1), (2h, f2)
        numer = 4 * f1 - f2 - 3 * f0
        denom = 2 * f1 - f2 - f0
        t = vs.ldexp(h, -1) * numer / denom

        bracket = vs.ldexp(h, 1)
        if not (0 < t < bracket):
            t = h
        self.evaluate(t)

    def _contract(self, h, f1):
        vs = self.vs
        f0 = self.f0
        while True:
            h2 = vs.ldexp(h, -1)
            f2, changed = self.evaluate(h2)
            if not changed:
                # the step underflowed; no progress at this precision.
                return
            if f2 < f0:
                break
            h, f1 = h2, f2

        # quadratic through (0, f0), (h / 2, f2), (h, f1)
        numer = f1 - 4 * f2 + 3 * f0
        denom = f1 - 2 * f2 + f0
        t = vs.ldexp(h, -2) * numer / denom

        if not (0 < t < h):
            t = vs.ldexp(h, -1)
        self.evaluate(t)
