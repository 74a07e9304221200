"""Open-model injection steps and profiles.

Re-exports every injection step and the profile type for convenient
access::

    from openload.injection import AtOnce, InjectionProfile, RampUsers
"""

from __future__ import annotations

from openload.injection.at_once import AtOnce
from openload.injection.base import InjectionStep
from openload.injection.constant_rate import ConstantRate
from openload.injection.nothing_for import NothingFor
from openload.injection.profile import InjectionProfile, inject_open
from openload.injection.ramp import RampUsers

__all__ = [
    "AtOnce",
    "ConstantRate",
    "InjectionProfile",
    "InjectionStep",
    "NothingFor",
    "RampUsers",
    "inject_open",
]
