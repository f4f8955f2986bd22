from chronoplan.models.scenario import ScenarioRecord  # noqa: F401
from chronoplan.models.timetable_version import TimetableVersion  # noqa: F401
