"""Deterministic recap: a templated, always-safe description of the dive."""

from services.dive_insight.types import DiveContext


def build_deterministic_recap(dive: DiveContext) -> str:
    where = f"{dive.location}, {dive.country}" if dive.country else dive.location
    parts = [f"Dive logged at {where} on {dive.date}."]

    profile = []
    if dive.max_depth_meters is not None:
        profile.append(f"max depth {dive.max_depth_meters:g} m")
    if dive.duration_minutes is not None:
        profile.append(f"duration {dive.duration_minutes:g} min")
    if profile:
        parts.append(f"Profile: {', '.join(profile)}.")

    return " ".join(parts)
