"""
Solver Adapters

A uniform `solve(model) -> SolveOutcome` contract over interchangeable
backends. No domain logic lives here: each adapter runs one solve of the
problem it is handed and reports the status and a variable assignment keyed
by variable name.

Backends:
  cbc     COIN-OR CBC, bundled with PuLP (default)
  glpk    GNU Linear Programming Kit (glpsol on PATH)
  highs   HiGHS (highs binary or highspy)
  gurobi  Gurobi (commercial, needs a licence)
  z3      Z3 SMT solver, via its Optimize engine
"""

from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Dict, Optional, Callable, Any

import pulp
import z3

from bis_model import BisModel


class SolverStatus(Enum):
    OPTIMAL = 'optimal'
    INFEASIBLE = 'infeasible'
    UNBOUNDED = 'unbounded'
    BACKEND_ERROR = 'backend_error'


@dataclass(frozen=True)
class SolveOutcome:
    """Result of a single solve call."""
    status: SolverStatus
    backend: str
    assignment: Dict[str, float] = field(default_factory=dict)
    objective_value: Optional[float] = None
    detail: str = ''

    @property
    def is_optimal(self) -> bool:
        return self.status == SolverStatus.OPTIMAL


_PULP_STATUS_MAP = {
    'Optimal': SolverStatus.OPTIMAL,
    'Infeasible': SolverStatus.INFEASIBLE,
    'Unbounded': SolverStatus.UNBOUNDED,
    'Not Solved': SolverStatus.BACKEND_ERROR,
    'Undefined': SolverStatus.BACKEND_ERROR,
}


class PulpSolver:
    """
    Adapter for any PuLP solver API.

    `factory` builds the PuLP solver object for an optional time limit.
    """

    def __init__(self, name: str, factory: Callable[[Optional[float]], Any]):
        self.name = name
        self.factory = factory

    def solve(self, model: BisModel, time_limit: Optional[float] = None) -> SolveOutcome:
        problem = model.problem
        try:
            solver = self.factory(time_limit)
            if not solver.available():
                return self._error(f"{self.name} is not available on this system")
            problem.solve(solver)
        except pulp.PulpSolverError as e:
            return self._error(str(e))

        status_str = pulp.LpStatus.get(problem.status, 'Undefined')
        status = _PULP_STATUS_MAP.get(status_str, SolverStatus.BACKEND_ERROR)

        if status == SolverStatus.OPTIMAL and problem.sol_status != pulp.LpSolutionOptimal:
            # Time limit hit with an incumbent: feasible but not proven optimal
            return self._error("stopped before proving optimality "
                               f"(solution status {problem.sol_status})")
        if status == SolverStatus.BACKEND_ERROR:
            return self._error(f"solver returned status '{status_str}'")
        if status != SolverStatus.OPTIMAL:
            return SolveOutcome(status=status, backend=self.name, detail=status_str)

        assignment = {}
        for var in problem.variables():
            value = var.varValue
            assignment[var.name] = float(value) if value is not None else 0.0

        return SolveOutcome(
            status=status,
            backend=self.name,
            assignment=assignment,
            objective_value=model.evaluate(problem.objective, assignment),
            detail=status_str,
        )

    def _error(self, detail: str) -> SolveOutcome:
        return SolveOutcome(status=SolverStatus.BACKEND_ERROR, backend=self.name, detail=detail)


class Z3Solver:
    """
    Adapter for the Z3 SMT solver.

    The PuLP problem is translated term by term: integer and binary variables
    become z3 Ints, continuous ones z3 Reals, and coefficients exact
    rationals.
    """

    name = 'z3'

    def solve(self, model: BisModel, time_limit: Optional[float] = None) -> SolveOutcome:
        problem = model.problem
        try:
            opt = z3.Optimize()
            if time_limit:
                opt.set('timeout', int(time_limit * 1000))

            variables = {}
            for var in problem.variables():
                if var.cat == pulp.LpInteger:
                    z = z3.Int(var.name)
                else:
                    z = z3.Real(var.name)
                variables[var.name] = z
                if var.lowBound is not None:
                    opt.add(z >= _rational(var.lowBound))
                if var.upBound is not None:
                    opt.add(z <= _rational(var.upBound))

            def linear(expression: pulp.LpAffineExpression):
                terms = [_rational(coef) * variables[var.name]
                         for var, coef in expression.items()]
                return z3.Sum(terms + [_rational(expression.constant)])

            for constraint in problem.constraints.values():
                lhs = linear(constraint)
                if constraint.sense == pulp.LpConstraintLE:
                    opt.add(lhs <= 0)
                elif constraint.sense == pulp.LpConstraintGE:
                    opt.add(lhs >= 0)
                else:
                    opt.add(lhs == 0)

            objective = linear(problem.objective)
            if problem.sense == pulp.LpMaximize:
                handle = opt.maximize(objective)
            else:
                handle = opt.minimize(objective)

            result = opt.check()
        except z3.Z3Exception as e:
            return SolveOutcome(status=SolverStatus.BACKEND_ERROR, backend=self.name,
                                detail=str(e))

        if result == z3.unsat:
            return SolveOutcome(status=SolverStatus.INFEASIBLE, backend=self.name,
                                detail='unsat')
        if result != z3.sat:
            return SolveOutcome(status=SolverStatus.BACKEND_ERROR, backend=self.name,
                                detail=opt.reason_unknown())
        if 'oo' in str(handle.value()):
            return SolveOutcome(status=SolverStatus.UNBOUNDED, backend=self.name,
                                detail=str(handle.value()))

        z3_model = opt.model()
        assignment = {
            name: _to_float(z3_model.eval(z, model_completion=True))
            for name, z in variables.items()
        }
        return SolveOutcome(
            status=SolverStatus.OPTIMAL,
            backend=self.name,
            assignment=assignment,
            objective_value=model.evaluate(problem.objective, assignment),
            detail='sat',
        )


def _rational(value: float):
    fraction = Fraction(value).limit_denominator(10 ** 12)
    return z3.Q(fraction.numerator, fraction.denominator)


def _to_float(value) -> float:
    if z3.is_int_value(value):
        return float(value.as_long())
    if z3.is_rational_value(value):
        return float(value.as_fraction())
    return float(value.as_decimal(12).rstrip('?'))


def _highs(time_limit: Optional[float]):
    solver = pulp.HiGHS_CMD(msg=False, timeLimit=time_limit)
    if solver.available():
        return solver
    return pulp.HiGHS(msg=False, timeLimit=time_limit)


# =============================================================================
# REGISTRY
# =============================================================================

DEFAULT_SOLVER = 'cbc'

SOLVERS = {
    'cbc': PulpSolver('cbc', lambda t: pulp.PULP_CBC_CMD(msg=False, timeLimit=t)),
    'glpk': PulpSolver('glpk', lambda t: pulp.GLPK_CMD(msg=False, timeLimit=t)),
    'highs': PulpSolver('highs', _highs),
    'gurobi': PulpSolver('gurobi', lambda t: pulp.GUROBI_CMD(msg=False, timeLimit=t)),
    'z3': Z3Solver(),
}


def get_solver(name: Optional[str] = None):
    """Look up a backend by name (case-insensitive)."""
    key = (name or DEFAULT_SOLVER).strip().lower()
    if key not in SOLVERS:
        raise ValueError(f"Unknown solver '{name}'. Choose from: {', '.join(sorted(SOLVERS))}")
    return SOLVERS[key]


def write_lp(model: BisModel, path: str):
    """Write the model in CPLEX LP format for inspection. Does not solve."""
    model.problem.writeLP(path)
