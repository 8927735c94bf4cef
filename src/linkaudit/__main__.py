# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""``python -m linkaudit`` entry point."""

from .cli import main

main()
