#!/usr/bin/env python3
"""Weekmap - A weekly heatmap of the year with one markdown note per week."""

import os
import json
import math
from dataclasses import dataclass
from datetime import datetime, date, timedelta
from enum import Enum
from pathlib import Path, PurePosixPath

from flask import Flask, render_template, jsonify, request
from loguru import logger


app = Flask(__name__)

DATA_DIR = Path(os.getenv("WEEKMAP_DATA_DIR", Path(__file__).parent / "data"))
SETTINGS_FILE = DATA_DIR / "settings.json"
VAULT_DIR = Path(os.getenv("WEEKMAP_VAULT_DIR", DATA_DIR / "vault"))

GRID_WEEKS = 52
PORT = 5051

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

FOCUS_NOTICE = "✨ Focus on the present week first!"


class WeekStartDay(str, Enum):
    MONDAY = "monday"
    SUNDAY = "sunday"


class WeekCellState(str, Enum):
    PAST = "past"
    CURRENT = "current"
    FUTURE = "future"


DEFAULT_FOLDER = "Weekly Notes"
DEFAULT_TEMPLATE = "## Tasks\n\n- [ ] \n\n## Notes\n\n"

# Persisted key -> default value
DEFAULT_SETTINGS = {
    "folderPath": DEFAULT_FOLDER,
    "noteTemplate": DEFAULT_TEMPLATE,
    "weekStartDay": WeekStartDay.MONDAY.value,
}


class StorageError(Exception):
    """A vault folder or file operation failed."""

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class Settings:
    folder_path: str = DEFAULT_FOLDER
    note_template: str = DEFAULT_TEMPLATE
    week_start_day: WeekStartDay = WeekStartDay.MONDAY


@dataclass(frozen=True)
class WeekBoundary:
    year: int
    week_number: int
    start_date: date
    end_date: date


@dataclass(frozen=True)
class NoteAddress:
    folder_path: str
    file_name: str
    full_path: str


@dataclass(frozen=True)
class NoteHandle:
    path: str
    created: bool


# ---------------------------------------------------------------------------
# Week arithmetic
# ---------------------------------------------------------------------------

def week_number_of(d):
    """Return the ISO-8601 week number of a calendar date.

    Only the date components are used, so a datetime at any time of day
    (or in any timezone) maps to the same week as its calendar date.
    Years with 53 ISO weeks do yield 53 here.
    """
    d = date(d.year, d.month, d.day)
    # ISO weeks are anchored on their Thursday
    thursday = d + timedelta(days=4 - d.isoweekday())
    year_start = date(thursday.year, 1, 1)
    return math.ceil(((thursday - year_start).days + 1) / 7)


def week_start(year, week_number, week_start_day=WeekStartDay.MONDAY):
    """Get the first day of a week in the given year.

    Monday weeks align to the Monday on or before the year's first
    Thursday. Sunday weeks align to the Sunday on or before January 1.
    The week number is not range-checked.
    """
    jan1 = date(year, 1, 1)
    # Sunday=0 .. Saturday=6
    day_of_week = jan1.isoweekday() % 7

    if WeekStartDay(week_start_day) == WeekStartDay.SUNDAY:
        offset = -day_of_week
    elif day_of_week <= 4:
        offset = 1 - day_of_week
    else:
        offset = 8 - day_of_week

    return jan1 + timedelta(days=offset + (week_number - 1) * 7)


def week_end(start):
    """Last day of the week beginning on start."""
    return start + timedelta(days=6)


def week_boundary(year, week_number, week_start_day=WeekStartDay.MONDAY):
    start = week_start(year, week_number, week_start_day)
    return WeekBoundary(year=year, week_number=week_number,
                        start_date=start, end_date=week_end(start))


def format_date(d):
    """Format a date like 'Mar 4' (no zero padding)."""
    return f"{MONTHS[d.month - 1]} {d.day}"


# ---------------------------------------------------------------------------
# Weekly note resolution
# ---------------------------------------------------------------------------

def classify(week_number, current_week):
    if week_number < current_week:
        return WeekCellState.PAST
    if week_number == current_week:
        return WeekCellState.CURRENT
    return WeekCellState.FUTURE


def can_navigate_to(week_number, current_week):
    """Allow opening past weeks, this week and next week only."""
    return week_number <= current_week + 1


def resolve_address(week_number, start, end, year, settings):
    """Build the vault path of a week's note.

    Example: 'Weekly Notes/Week 10 - Mar 4 to Mar 10, 2024.md'
    """
    file_name = f"Week {week_number} - {format_date(start)} to {format_date(end)}, {year}"
    return NoteAddress(
        folder_path=settings.folder_path,
        file_name=file_name,
        full_path=f"{settings.folder_path}/{file_name}.md",
    )


def open_or_create(address, settings, storage):
    """Make sure the note at address exists and return a handle to it.

    Missing folders are created, a missing note gets the settings template
    inserted as-is, and an existing note is never rewritten. StorageError
    from the storage backend propagates unchanged.
    """
    if not storage.exists(address.folder_path):
        storage.create_folder(address.folder_path)

    if storage.exists(address.full_path):
        return NoteHandle(path=address.full_path, created=False)

    try:
        return storage.create_file(address.full_path, settings.note_template)
    except StorageError:
        # Lost a race with another request creating the same note
        if storage.exists(address.full_path):
            return NoteHandle(path=address.full_path, created=False)
        raise


# ---------------------------------------------------------------------------
# Vault storage
# ---------------------------------------------------------------------------

class VaultStorage:
    """Local folder acting as the notes vault. Paths are vault-relative."""

    def __init__(self, root):
        self.root = Path(root)

    def _resolve(self, path):
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise StorageError(f"Path escapes the vault: {path}", path=path)
        if "\x00" in str(path):
            raise StorageError(f"Invalid character in path: {path!r}", path=path)
        return self.root.joinpath(*rel.parts)

    def exists(self, path):
        return self._resolve(path).exists()

    def create_folder(self, path):
        target = self._resolve(path)
        try:
            # Another request may have created it already
            target.mkdir(parents=True, exist_ok=True)
        except FileExistsError as e:
            raise StorageError(f"Not a folder: {path}", path=path) from e
        except OSError as e:
            raise StorageError(f"Could not create folder {path}: {e}", path=path) from e
        logger.info(f"[STORAGE] Created folder {path}")

    def create_file(self, path, content):
        target = self._resolve(path)
        try:
            with open(target, "x", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise StorageError(f"Could not create file {path}: {e}", path=path) from e
        logger.info(f"[STORAGE] Created note {path}")
        return NoteHandle(path=path, created=True)

    def read_file(self, path):
        try:
            return self._resolve(path).read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Could not read file {path}: {e}", path=path) from e


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def load_settings():
    """Load the raw settings record from JSON file."""
    if not SETTINGS_FILE.exists():
        return {}
    try:
        data = json.loads(SETTINGS_FILE.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.warning(f"[SETTINGS] Ignoring unreadable {SETTINGS_FILE}: {e!r}")
        return {}
    return data if isinstance(data, dict) else {}


def save_settings(settings):
    """Save the raw settings record to JSON file."""
    SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    SETTINGS_FILE.write_text(json.dumps(settings, indent=2))


def settings_from_dict(raw):
    """Merge a stored record over the defaults into a Settings snapshot.

    Blank or invalid values fall back to their defaults instead of being
    rejected. Keys we don't know about are ignored.
    """
    merged = {**DEFAULT_SETTINGS, **raw}

    folder = merged["folderPath"]
    if not isinstance(folder, str) or not folder.strip().strip("/"):
        folder = DEFAULT_FOLDER
    else:
        folder = folder.strip().strip("/")

    template = merged["noteTemplate"]
    if not isinstance(template, str) or not template:
        template = DEFAULT_TEMPLATE

    try:
        start_day = WeekStartDay(str(merged["weekStartDay"]).lower())
    except ValueError:
        start_day = WeekStartDay.MONDAY

    return Settings(folder_path=folder, note_template=template, week_start_day=start_day)


def settings_to_dict(settings):
    return {
        "folderPath": settings.folder_path,
        "noteTemplate": settings.note_template,
        "weekStartDay": settings.week_start_day.value,
    }


def current_settings():
    return settings_from_dict(load_settings())


def get_storage():
    return VaultStorage(VAULT_DIR)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def build_heatmap(today, settings):
    """Describe every cell of the grid for the year containing today."""
    year = today.year
    current_week = week_number_of(today)

    cells = []
    for week in range(1, GRID_WEEKS + 1):
        boundary = week_boundary(year, week, settings.week_start_day)
        cells.append({
            "week": week,
            "state": classify(week, current_week).value,
            "start": boundary.start_date.isoformat(),
            "end": boundary.end_date.isoformat(),
            "title": f"Week {week}: {format_date(boundary.start_date)} - {format_date(boundary.end_date)}",
            "can_open": can_navigate_to(week, current_week),
        })

    return {
        "year": year,
        "current_week": current_week,
        "week_start_day": settings.week_start_day.value,
        "cells": cells,
    }


@app.route("/")
def index():
    """Serve the heatmap UI."""
    return render_template("index.html")


@app.route("/api/heatmap")
def get_heatmap():
    """Get the week cells for the current year."""
    today = datetime.now().date()
    return jsonify(build_heatmap(today, current_settings()))


@app.route("/api/weeks/<int:week>/open", methods=["POST"])
def open_week(week):
    """Open a week's note, creating it from the template if needed."""
    if week < 1 or week > GRID_WEEKS:
        return jsonify({"error": f"week must be 1-{GRID_WEEKS}"}), 400

    today = datetime.now().date()
    current_week = week_number_of(today)

    if not can_navigate_to(week, current_week):
        logger.info(f"[WEEKMAP] Denied opening week {week} (current week {current_week})")
        return jsonify({"notice": FOCUS_NOTICE}), 403

    settings = current_settings()
    boundary = week_boundary(today.year, week, settings.week_start_day)
    address = resolve_address(week, boundary.start_date, boundary.end_date, today.year, settings)
    storage = get_storage()

    try:
        handle = open_or_create(address, settings, storage)
        content = storage.read_file(handle.path)
    except StorageError as e:
        logger.error(f"[WEEKMAP] Failed to open {address.full_path}: {e}")
        return jsonify({"error": str(e)}), 500

    return jsonify({
        "path": handle.path,
        "created": handle.created,
        "content": content,
    })


@app.route("/api/settings", methods=["GET"])
def get_settings():
    """Get effective settings, keeping any extra stored keys."""
    raw = load_settings()
    return jsonify({**raw, **settings_to_dict(settings_from_dict(raw))})


@app.route("/api/settings", methods=["POST"])
def update_settings():
    """Update settings."""
    data = request.json or {}
    if not isinstance(data, dict):
        return jsonify({"error": "settings must be an object"}), 400

    raw = load_settings()

    for key in DEFAULT_SETTINGS:
        if key in data:
            raw[key] = data[key]

    effective = settings_from_dict(raw)
    raw.update(settings_to_dict(effective))
    save_settings(raw)
    logger.info(f"[SETTINGS] Saved folder={effective.folder_path!r} week_start={effective.week_start_day.value}")
    return jsonify(raw)


if __name__ == "__main__":
    VAULT_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"Starting Weekmap on http://localhost:{PORT}")
    app.run(debug=True, port=PORT)
