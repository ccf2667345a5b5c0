"""Unicycle footstep / DCM / CoM 기준 궤적 플래너"""

from unicycle_planner.contact_list import Contact, ContactList, ContactPhaseList
from unicycle_planner.trajectory_planner import (
    FSM,
    ConfigurationError,
    Input,
    Output,
    UnicycleTrajectoryPlanner,
    unicycle_controller_from_string,
)
from unicycle_planner.unicycle_generator import DCMInitialState, Step, UnicycleController

__all__ = [
    "Contact",
    "ContactList",
    "ContactPhaseList",
    "ConfigurationError",
    "DCMInitialState",
    "FSM",
    "Input",
    "Output",
    "Step",
    "UnicycleController",
    "UnicycleTrajectoryPlanner",
    "unicycle_controller_from_string",
]
