"""
    Updates of the approximate inverse Hessian matrix.

    Both updates are rank two corrections satisfying a secant condition
    along the accepted step s = rate * d, where d is the unit step direction
    and y = g_new - g is the change of the gradient.

    BFGSUpdate is the classic inverse BFGS update,

        H+ = H + (s.y + y.Hy) / (s.y)^2 s s^T - (Hy s^T + s y^T H) / s.y .

    ModifiedBFGSUpdate replaces y by

        y* = y + (phi / |s|^2) s,    phi = max(2 (f - f_new) + (g_new + g).s, 0),

    which makes the update see the third order information carried by the
    two most recent function values; on a quadratic phi vanishes and the two
    updates agree. See Wei, Li and Qi, Comput. Math. Appl. 51 (2006) 1265.

    The corrections are computed on the upper triangle and mirrored, so the
    matrix stays exactly symmetric at any precision.

    An updater is made once per run; its work vectors are reused by every call.
"""
from rktk.base import NumericalFault

STAGE = "while updating approximate inverse Hessian"

class BFGSUpdate(object):
    def __init__(self, vs, n):
        self.vs = vs
        self.n = n
        self.kappa = vs.zeros(n)

    def __repr__(self):
        return "%s(n=%d)" % (type(self).__name__, self.n)

    def __call__(self, hinv, dg, rate, d, y0=None, y1=None, g0=None):
        """ Update hinv in place.

            Parameters
            ----------
            hinv : matrix
            dg : vector, change of the gradient over the step
            rate : step size
            d : unit step direction
            y0, y1, g0 : objective before and after the step, gradient before the
                step. Unused by the plain BFGS update.
        """
        self.update(hinv, dg, rate, d)

    def update(self, hinv, dg, rate, d):
        vs = self.vs
        dot = vs.dot

        with vs.local():
            kappa = vs.matvec(hinv, dg, out=self.kappa)
            theta = dot(dg, kappa)
            lam = rate * dot(dg, d)
            if lam == 0 or vs.isnan(lam) or vs.isnan(theta):
                raise NumericalFault(STAGE)

            sigma = (lam + theta) / (lam * lam)
            beta = vs.ldexp(rate * lam * sigma, -1)

            for i in range(self.n):
                kappa[i] = kappa[i] - beta * d[i]

            alpha = -rate / lam

            for i in range(self.n):
                ki = kappa[i]
                di = d[i]
                for j in range(i, self.n):
                    hinv[i, j] = hinv[i, j] + alpha * (ki * d[j] + di * kappa[j])
                    hinv[j, i] = hinv[i, j]

        if vs.isnan(kappa) or vs.isnan(alpha):
            raise NumericalFault(STAGE)

class ModifiedBFGSUpdate(BFGSUpdate):
    def __init__(self, vs, n):
        BFGSUpdate.__init__(self, vs, n)
        self.ystar = vs.zeros(n)

    def __call__(self, hinv, dg, rate, d, y0=None, y1=None, g0=None):
        if y0 is None or y1 is None or g0 is None:
            raise ValueError("the modified BFGS update needs y0, y1 and g0")

        vs = self.vs
        dot = vs.dot

        with vs.local():
            # (g_new + g).s = rate * (2 g + dg).d
            phi = 2 * (y0 - y1) + rate * (2 * dot(g0, d) + dot(dg, d))
            if vs.isnan(phi):
                raise NumericalFault(STAGE)
            if phi < 0:
                phi = vs.scalar(0)

            # |s|^2 = rate^2 for a unit direction
            rho = phi / rate
            ystar = vs.axpy(self.ystar, rho, d, dg)

        self.update(hinv, ystar, rate, d)
