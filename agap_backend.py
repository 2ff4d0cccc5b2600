# Gurobi backend: solves one window model and reports an assignment or an IIS
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import gurobipy as gp
from gurobipy import GRB

from agap_errors import BackendError

logger = logging.getLogger(__name__)

STATUS_NAMES = {
    GRB.OPTIMAL: "OPTIMAL",
    GRB.INFEASIBLE: "INFEASIBLE",
    GRB.INF_OR_UNBD: "INF_OR_UNBD",
    GRB.UNBOUNDED: "UNBOUNDED",
    GRB.TIME_LIMIT: "TIME_LIMIT",
    GRB.INTERRUPTED: "INTERRUPTED",
    GRB.SUBOPTIMAL: "SUBOPTIMAL",
}


@dataclass
class Assignment:
    window: object
    gates: Dict[int, int]  # flight -> gate
    objective: float
    status: str
    mip_gap: Optional[float] = None


@dataclass
class Infeasible:
    window: object
    iis: List[str] = field(default_factory=list)


class GurobiBackend:
    """
    Owns one Gurobi environment for the whole run and solves window models synchronously.
    """

    def __init__(self, config, env=None):
        self.config = config
        self._owns_env = env is None
        try:
            if env is None:
                env = gp.Env(empty=True)
                env.setParam("OutputFlag", config.output_flag)
                env.start()
        except gp.GurobiError as e:
            raise BackendError(f"Gurobi environment unavailable: {e}") from e
        self.env = env

    def close(self):
        if self._owns_env and self.env is not None:
            self.env.dispose()
            self.env = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _apply_params(self, m):
        m.Params.OutputFlag = self.config.output_flag
        if self.config.log_file:
            m.Params.LogFile = self.config.log_file
        if self.config.time_limit is not None:
            m.Params.TimeLimit = self.config.time_limit
        if self.config.mip_gap is not None:
            m.Params.MIPGap = self.config.mip_gap

    def _write(self, m, window, suffix):
        if self.config.model_dir:
            os.makedirs(self.config.model_dir, exist_ok=True)
            m.write(os.path.join(self.config.model_dir, f"window_{window.start}_{window.stop}.{suffix}"))

    def irreducible_subsystem(self, wm):
        """Names of the constraints in an IIS of an infeasible window model."""
        m = wm.model
        m.computeIIS()
        self._write(m, wm.window, "ilp")
        return [c.ConstrName for c in m.getConstrs() if c.IISConstr]

    def solve(self, wm):
        """
        Returns an Assignment, or Infeasible with the IIS constraint names.
        Raises BackendError when Gurobi fails or stops without any solution.
        """
        m = wm.model
        window = wm.window
        try:
            self._apply_params(m)
            self._write(m, window, "lp")
            m.optimize()
            status = m.Status

            if status == GRB.OPTIMAL or (status in (GRB.TIME_LIMIT, GRB.SUBOPTIMAL, GRB.INTERRUPTED)
                                         and m.SolCount > 0):
                if status != GRB.OPTIMAL:
                    logger.warning("Window %s stopped with status %s; using incumbent (gap %.4f)",
                                   window, STATUS_NAMES.get(status, status), m.MIPGap)
                return Assignment(
                    window=window,
                    gates=wm.assignment(),
                    objective=m.ObjVal,
                    status=STATUS_NAMES.get(status, str(status)),
                    mip_gap=m.MIPGap,
                )

            if status in (GRB.INFEASIBLE, GRB.INF_OR_UNBD):
                iis = self.irreducible_subsystem(wm)
                logger.error("Window %s is infeasible. IIS constraints: %s", window, iis)
                return Infeasible(window=window, iis=iis)

        except gp.GurobiError as e:
            raise BackendError(f"Gurobi failed on window {window}: {e}", window=window) from e

        raise BackendError(
            f"Window {window} ended with status {STATUS_NAMES.get(status, status)} and no solution",
            window=window,
        )
