#!/usr/bin/env python3
"""
Import Wizard - Spreadsheet import with mapping, validation and commit

Turns operator-supplied spreadsheets into validated records for a registered
import target: ingest, map columns to system fields, validate remotely, and
commit the valid rows.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Import Wizard Team"
__description__ = "Spreadsheet import wizard with column mapping, validation and commit"
