from airtime.engine.cursors import ContentCursor
from airtime.engine.grid import Slot, SlotGrid, build_slot_grid, optimal_slot_duration
from airtime.engine.planner import Assignment, assign_slot, plan
from airtime.engine.reruns import RerunFrequency, RerunPolicy
from airtime.engine.selector import select_next
from airtime.engine.state import GenerationState, RotationType

__all__ = [
    "ContentCursor",
    "Slot",
    "SlotGrid",
    "build_slot_grid",
    "optimal_slot_duration",
    "Assignment",
    "assign_slot",
    "plan",
    "RerunFrequency",
    "RerunPolicy",
    "select_next",
    "GenerationState",
    "RotationType"
]
