"""devstack-provisioner: macOS iOS/Android development machine setup.

Core design goals:
- Idempotent stages (probe before acting)
- Fixed stage pipeline with per-stage concurrency policy
- Fail-soft: one broken toolchain never aborts unrelated stages
- One sudo session held for the whole run
- Network changes guarded by a restore point
- Centralized logging
"""

__version__ = "2.0.0"

__all__ = ["__version__"]
