"""

    Data model

    A ``Problem`` is defined on a ``VectorSpace``; the problem is to minimize an objective function
    whose gradient is known. The ``VectorSpace`` is the numeric engine: it fixes the precision
    and the rounding mode of every scalar the optimizer touches.

    A ``Problem`` can be `minimize`d by an ``Optimizer``, which owns the ``State`` of one run.
    An ``Optimizer`` implements a minimization policy (algorithm) as two transitions:

        step  : compute a candidate point (x_new, y_new, g_new) from the current point;
        shift : commit the candidate as the current point.

    ``shift`` is only legal after a ``step`` that strictly decreased the objective.

    Optimizer parameters
    --------------------
    Optimizer parameters only control the behavior of the optimizer; they are given
    as ``optimizer_defaults`` on the class and may be overridden by keyword arguments.
"""

class ContinueIteration(str): pass
class ConvergedIteration(str): pass

class NumericalFault(ArithmeticError):
    """ An arithmetic operation produced a not-a-number result.

        This is unrecoverable; it signals a violated precondition of the algorithm
        (zero curvature, a zero-length gradient, ...). The core never catches it.
    """
    def __init__(self, stage):
        self.stage = stage
        ArithmeticError.__init__(self, "Invalid calculation performed %s." % stage)

import time

class State(object):
    def __init__(self):
        self.nit = 0
        self.fev = 0
        self.gev = 0
        self.x = None
        self.y = None
        self.g = None
        self.xnorm = None
        self.gnorm = None
        self.rate = None
        self.hinv = None
        self.run_id = None

        # per-run workspaces, made by Optimizer.start
        self.searcher = None
        self.update = None

        self.x_new = None
        self.y_new = None
        self.g_new = None
        self.xnorm_new = None
        self.gnorm_new = None
        self.rate_new = None

        self.step_type = 'NONE'
        self.assessment = None
        self.converged = False
        self.message = ""
        self.timestamp = time.time()
        self.wallclock = 0

        # {digits} is substituted by the print precision
        self.default_format = dict(
        [
            ('wallclock', '08.4f',),
            ('nit', '012d',),
            ('fev', '06d',),
            ('gev', '06d',),
            ('y', '+.{digits}e'),
            ('gnorm', '+.{digits}e'),
            ('rate', '+.{digits}e'),
            ('xnorm', '+.{digits}e'),
            ('step_type', '4s'),
            ('converged', '6s'),
            ('message', '20s'),
            ('assessment', '20s')
        ])

    def __getitem__(self, key):
        return getattr(self, key)

    def __setitem__(self, key, value):
        return setattr(self, key, value)

    def __contains__(self, key):
        return hasattr(self, key)

    def __repr__(self):
        return self.format()

    def format(self, columns=None, header=False, digits=6, sp=' | '):
        """ format a state object.

            Parameters
            ----------
            columns : list of string or tuples.
                for each item,
                if tuple, the format spec of the column. if string, use a default format
                for the column.
            header : bool
                format the column headers if True
            digits : int
                number of digits after the decimal point of scientific columns.
        """

        dd = dict(self.default_format)

        if columns is None:
            columns = ['nit', 'y', 'gnorm', 'rate', 'xnorm', 'step_type']

        c2 = []
        for item in columns:
            if not isinstance(item, tuple):
                item = (item, dd.get(item, 's'))
            c2.append((item[0], item[1].replace('{digits}', str(digits))))

        if header:
            return sp.join(key for key, fmt in c2)

        def fmt_field(key, fmt):
            value = getattr(self, key, None)
            if value is None:
                return "N/A"
            try:
                return format(value, fmt)
            except (TypeError, ValueError):
                return str(value)

        return sp.join(fmt_field(key, fmt) for key, fmt in c2)

class Problem(object):
    """ Defines a problem.

        objective(x) returns a scalar of the vector space, gradient(x) a vector
        shaped like x. Both are evaluated inside ``vs.local()``, so plain Python
        arithmetic on the engine scalars obeys the engine precision.
    """
    def __init__(self, objective, gradient, vs=None, dimension=None):
        if vs is None:
            from .vectorspace import real_vector_space
            vs = real_vector_space

        if not isinstance(vs, VectorSpace):
            raise TypeError("expecting a VectorSpace object for vs, got type(vs) = %s" % repr(type(vs)))

        self.vs = vs
        self.dimension = dimension
        self._objective = objective
        self._gradient = gradient

    def f(self, x):
        with self.vs.local():
            return self._objective(x)

    def g(self, x):
        with self.vs.local():
            return self._gradient(x)

class Optimizer(object):
    optimizer_defaults = {}

    def __init__(self, **kwargs):
        # this updates the attributes
        self.__dict__.update(type(self).optimizer_defaults)
        self.__dict__.update(kwargs)

    def terminated(self, problem, state):
        if state.converged: return True

        if getattr(self, 'maxiter', None) is not None and state.nit >= self.maxiter:
            return True

        return False

    def start(self, problem, x0, **state_args):
        raise NotImplementedError

    def step(self, problem, state):
        # it shall fill the candidate slot of state and return an assessment
        raise NotImplementedError

    def decreased(self, problem, state):
        return state.y_new is not None and state.y_new < state.y

    def shift(self, problem, state):
        raise NotImplementedError

    def minimize(optimizer, problem, state, monitor=None):
        """ minimize a problem starting from a state

            Parameters
            ----------
            problem : Problem
                the problem object, which defines the objective function
                and the vector space of the parameters.

            state : State
                the initial state, made by `start`. It is updated in place.

            monitor: function(state)
                a function that gets called after every accepted iteration.

            Returns
            -------
            state : a State object of the final minimization result.
            state.converged : if the solution has converged
            state.x : the new value of the parameter.
            state.y : the new value of the objective

        """
        while not optimizer.terminated(problem, state):
            state.assessment = optimizer.step(problem, state)

            if not optimizer.decreased(problem, state):
                state.converged = True
                state.message = str(state.assessment)
                break

            optimizer.shift(problem, state)
            state.message = str(state.assessment)

            if monitor is not None:
                monitor(state)

        return state

class VectorSpace(object):
    """ The numeric engine of a problem.

        A vector is a one dimensional numpy array of engine scalars;
        a matrix is a two dimensional numpy array of engine scalars.
    """
    precision = None

    def __init__(self, addmul=None, dot=None):
        if addmul:
            self.addmul = addmul
        if dot:
            self.dot = dot

    def local(self):
        """ A context inside which Python operators on scalars follow this engine. """
        raise NotImplementedError

    def scalar(self, value):
        raise NotImplementedError

    def isnan(self, a):
        raise NotImplementedError

    def isfinite(self, a):
        raise NotImplementedError

    def zeros(self, n):
        raise NotImplementedError

    def copy(self, a):
        r = self.addmul(0, a, 1)
        assert type(r) is type(a)
        return r

    def identity(self, n):
        raise NotImplementedError

    def addmul(self, a, b, c):
        """ Defines the addmul operation.

            either subclass this method or supply a method in the constructor, __init__

            addmul(a, b, c) := a + b * c

            The result shall be a vector like b; c is a scalar.
        """

        raise NotImplementedError

    def dot(self, a, b):
        """ defines the inner product operation.

            dot(a, b) := a @ b

            The result shall be a scalar of this engine.
        """
        raise NotImplementedError

    def norm(self, a):
        raise NotImplementedError

    def axpy(self, out, t, x, y):
        """ out <- t * x + y, in place. out may be y. """
        raise NotImplementedError

    def matvec(self, M, v, out=None):
        raise NotImplementedError

    def equal(self, a, b):
        """ True if every coordinate of a and b is identical. """
        raise NotImplementedError

    def ldexp(self, x, n):
        """ x * 2 ** n """
        raise NotImplementedError

    def format(self, x, digits):
        """ signed scientific notation with `digits` digits after the point. """
        raise NotImplementedError
