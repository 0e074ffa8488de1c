"""
    Vectors.

    A VectorSpace is the numeric engine of a problem. It defines addmul,
    which allows transporting vectors, and dot, which defines the inner
    product and distance; plus the handful of matrix operations the
    quasi-Newton methods need.

    Vectors are one dimensional numpy arrays, matrices are two dimensional
    numpy arrays. RealVectorSpace stores float64; MPFRVectorSpace stores
    gmpy2.mpfr objects in arrays of dtype object, and every operation is
    rounded to the precision and in the rounding mode of the space.

"""
import numpy
import gmpy2

from rktk.base import VectorSpace

class RealVectorSpace(VectorSpace):
    precision = 53

    def local(self):
        # NaN is detected explicitly by the optimizer; keep numpy quiet.
        return numpy.errstate(divide='ignore', invalid='ignore', over='ignore')

    def scalar(self, value):
        if isinstance(value, str):
            value = value.strip()
        return numpy.float64(value)

    def isnan(self, a):
        return bool(numpy.isnan(a).any())

    def isfinite(self, a):
        return bool(numpy.isfinite(a).all())

    def zeros(self, n):
        return numpy.zeros(n)

    def identity(self, n):
        return numpy.eye(n)

    def addmul(self, a, b, c):
        """ a + b * c, follow the type of b """
        c = b * c
        if isinstance(a, numpy.ndarray) or a != 0: c = c + a
        return c

    def dot(self, a, b):
        """ einsum('i,i->', a, b) """
        return numpy.dot(a, b)

    def norm(self, a):
        return numpy.sqrt(numpy.dot(a, a))

    def axpy(self, out, t, x, y):
        out[...] = t * x + y
        return out

    def matvec(self, M, v, out=None):
        return numpy.dot(M, v, out=out)

    def equal(self, a, b):
        return bool(numpy.array_equal(a, b))

    def ldexp(self, x, n):
        return numpy.ldexp(x, n)

    def format(self, x, digits):
        return format(float(x), '+.%de' % digits)

ROUNDING_MODES = {
    'nearest' : gmpy2.RoundToNearest,
    'zero' : gmpy2.RoundToZero,
    'up' : gmpy2.RoundUp,
    'down' : gmpy2.RoundDown,
    'away' : gmpy2.RoundAwayZero,
}

class MPFRVectorSpace(VectorSpace):
    """ Arbitrary precision vectors of gmpy2.mpfr.

        Parameters
        ----------
        precision : int
            number of bits in the significand of every scalar.
        rounding : str
            one of 'nearest', 'zero', 'up', 'down', 'away'.
    """
    def __init__(self, precision=53, rounding='nearest'):
        if precision < 2 or precision > gmpy2.get_max_precision():
            raise ValueError("precision %d is out of range" % precision)
        if rounding not in ROUNDING_MODES:
            raise ValueError("unknown rounding mode %r, expecting one of %s"
                    % (rounding, ', '.join(sorted(ROUNDING_MODES))))
        self.precision = int(precision)
        self.rounding = rounding

    def __repr__(self):
        return "MPFRVectorSpace(precision=%d, rounding=%r)" % (self.precision, self.rounding)

    def local(self):
        return gmpy2.context(precision=self.precision, round=ROUNDING_MODES[self.rounding])

    def _vector(self, values):
        r = numpy.empty(len(values), dtype=object)
        r[:] = values
        return r

    def scalar(self, value):
        if isinstance(value, str):
            value = value.strip()
        with self.local():
            return gmpy2.mpfr(value)

    def isnan(self, a):
        if isinstance(a, numpy.ndarray):
            return any(gmpy2.is_nan(x) for x in a.flat)
        return gmpy2.is_nan(a)

    def isfinite(self, a):
        if isinstance(a, numpy.ndarray):
            return all(gmpy2.is_finite(x) for x in a.flat)
        return gmpy2.is_finite(a)

    def zeros(self, n):
        r = numpy.empty(n, dtype=object)
        r.fill(self.scalar(0))
        return r

    def identity(self, n):
        M = numpy.empty((n, n), dtype=object)
        M.fill(self.scalar(0))
        one = self.scalar(1)
        for i in range(n):
            M[i, i] = one
        return M

    def addmul(self, a, b, c):
        """ a + b * c, follow the type of b; fused per element. """
        with self.local():
            if not isinstance(a, numpy.ndarray) and a == 0:
                return self._vector([bi * c for bi in b])
            if not isinstance(a, numpy.ndarray):
                return self._vector([gmpy2.fma(bi, c, a) for bi in b])
            return self._vector([gmpy2.fma(bi, c, ai) for ai, bi in zip(a, b)])

    def dot(self, a, b):
        with self.local():
            r = a[0] * b[0]
            for i in range(1, len(a)):
                r = gmpy2.fma(a[i], b[i], r)
            return r

    def norm(self, a):
        with self.local():
            return gmpy2.sqrt(self.dot(a, a))

    def axpy(self, out, t, x, y):
        with self.local():
            for i in range(len(out)):
                out[i] = gmpy2.fma(t, x[i], y[i])
        return out

    def matvec(self, M, v, out=None):
        if out is None:
            out = numpy.empty(len(v), dtype=object)
        for i in range(M.shape[0]):
            out[i] = self.dot(M[i], v)
        return out

    def equal(self, a, b):
        return all(ai == bi for ai, bi in zip(a, b))

    def ldexp(self, x, n):
        with self.local():
            if n >= 0:
                return gmpy2.mul_2exp(x, n)
            return gmpy2.div_2exp(x, -n)

    def format(self, x, digits):
        return format(x, '+.%de' % digits)

real_vector_space = RealVectorSpace()
