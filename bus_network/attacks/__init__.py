"""
Bus Sensor Network - Attacks Module

This module contains the denial-of-service attacker:
- Attack modes: Jammer, Flooder
- Per-mode parameter presets and attack windows
"""

from .attacks import (
    AttackMode,
    AttackParameters,
    AttackConfig,
    AttackGenerator,
    ATTACK_PRESETS,
    default_attack_window
)

__all__ = [
    'AttackMode',
    'AttackParameters',
    'AttackConfig',
    'AttackGenerator',
    'ATTACK_PRESETS',
    'default_attack_window'
]
