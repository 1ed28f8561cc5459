# =======================================================================================
# gym_access/__init__.py - Package Initialization
# =======================================================================================
"""
Gym Access - Membership Admission & Lifecycle Engine

Resolves scanned cards to members, evaluates their membership against its
lifecycle, admits or denies, and keeps an auditable entry log. A background
sweep advances memberships through date-based transitions.
"""

__version__ = "1.0.0"
__author__ = "Gym Access Team"
