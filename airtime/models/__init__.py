from airtime.models.content import Content, Episode
from airtime.models.cursor import ContentCursorRecord
from airtime.models.generation_run import GenerationRun
from airtime.models.queue import QueueEntry
from airtime.models.rotation import RotationGroup, RotationContent
from airtime.models.schedule import ScheduleEntry, OwnerLock
from airtime.models.settings import AppSettings
from airtime.models.standing import StandingRequest

__all__ = [
    "Content",
    "Episode",
    "ContentCursorRecord",
    "GenerationRun",
    "QueueEntry",
    "RotationGroup",
    "RotationContent",
    "ScheduleEntry",
    "OwnerLock",
    "AppSettings",
    "StandingRequest"
]
