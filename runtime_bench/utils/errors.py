#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Copyright 2026 Vaquar Khan

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

================================================================================
Harness Errors
================================================================================
Purpose: Error taxonomy of the measurement harness
"""


class HarnessError(Exception):
    """Base class for measurement harness errors"""


class ConfigurationError(HarnessError, ValueError):
    """
    Raised when a RunConfig describes an impossible run.

    Examples: no budget at all, both a duration and an iteration budget,
    negative values or fewer than one worker.
    """


class EmptySampleSetError(HarnessError, ValueError):
    """Raised when statistics are requested over zero samples"""

    def __init__(self, message: str = "no data: sample set is empty"):
        super().__init__(message)
