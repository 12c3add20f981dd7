# Copyright (C) 2025 Richard Owen
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""Error taxonomy shared by the store, scheduler and phase machine.

Validation and phase errors are handed back inside result objects rather than
raised; observer errors are logged; scheduling invariant violations are raised
when the scheduler runs in strict mode.
"""

from __future__ import annotations

from typing import Optional


class MatchdayError(Exception):
    """Base class for every error raised or reported by the session core."""


class ValidationError(MatchdayError):
    """A proposed mutation violates a field invariant."""

    def __init__(self, path: str, message: str, value: object = None) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.value = value


class PhaseTransitionError(MatchdayError):
    """A phase transition was requested from a phase that does not allow it."""

    def __init__(self, transition: str, current_phase: str) -> None:
        super().__init__(f"Cannot {transition} while match phase is '{current_phase}'")
        self.transition = transition
        self.current_phase = current_phase


class ObserverError(MatchdayError):
    """A subscriber callback raised while being notified."""

    def __init__(self, callback_name: str, original: BaseException) -> None:
        super().__init__(f"Observer {callback_name} raised {type(original).__name__}: {original}")
        self.callback_name = callback_name
        self.original = original


class SchedulingInvariantViolation(MatchdayError):
    """The timeline would lose its ordering or pairing guarantees."""

    def __init__(self, message: str, event_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.event_id = event_id
