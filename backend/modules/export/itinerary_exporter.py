"""
modules/export/itinerary_exporter.py
--------------------------------------
Read-only renderings of an already-scheduled Itinerary.

Formats:
  json      — wire record plus a conflict summary
  calendar  — iCalendar (RFC 5545) VCALENDAR, one VEVENT per scheduled visit
  share     — link carrying a urlsafe-base64 JSON digest of the trip
  text      — plain day-by-day agenda (printable summary)

Exporting never changes the schedule; conflicts are reported, not fixed.
"""

from __future__ import annotations

import base64
import json
import re
from dataclasses import dataclass
from datetime import datetime

from icalendar import Calendar, Event

import config
from modules.errors import UnsupportedExportFormat
from modules.planning.conflict_detector import ConflictDetector, summarize
from schemas.itinerary import Itinerary


@dataclass
class ExportArtifact:
    format: str
    filename: str
    content: str
    mime_type: str


def _slug(name: str) -> str:
    return re.sub(r"\s+", "_", name.strip()) or "itinerary"


class ItineraryExporter:

    FORMATS = ("json", "calendar", "share", "text")

    def __init__(
        self,
        detector: ConflictDetector | None = None,
        share_base_url: str = config.SHARE_BASE_URL,
    ) -> None:
        self.detector = detector or ConflictDetector()
        self.share_base_url = share_base_url

    def export(self, itinerary: Itinerary, fmt: str = "json") -> ExportArtifact:
        renderers = {
            "json": self.to_json,
            "calendar": self.to_calendar,
            "ics": self.to_calendar,
            "share": self.to_share_link,
            "text": self.to_text,
        }
        renderer = renderers.get(fmt)
        if renderer is None:
            raise UnsupportedExportFormat(
                f"Unsupported export format: {fmt!r} (expected one of {', '.join(self.FORMATS)})",
                format=fmt,
            )
        return renderer(itinerary)

    # ── Renderers ─────────────────────────────────────────────────────────────

    def to_json(self, itinerary: Itinerary) -> ExportArtifact:
        conflicts = self.detector.detect_conflicts(itinerary)
        body = {
            "itinerary": itinerary.to_dict(),
            "conflicts": summarize(conflicts),
            "exported_at": datetime.now().isoformat(),
        }
        return ExportArtifact(
            format="json",
            filename=f"{_slug(itinerary.name)}_itinerary.json",
            content=json.dumps(body, indent=2, ensure_ascii=False),
            mime_type="application/json",
        )

    def to_calendar(self, itinerary: Itinerary) -> ExportArtifact:
        stamp = datetime.now()
        cal = Calendar()
        cal.add("prodid", "-//itinerary-planner//EN")
        cal.add("version", "2.0")
        cal.add("calscale", "GREGORIAN")
        cal.add("x-wr-calname", itinerary.name)
        for day in itinerary.days:
            for entry in day.experiences:
                exp = entry.experience
                ev = Event()
                ev.add("uid", f"{itinerary.id}-{exp.id}-{entry.time_slot:%Y%m%d}")
                ev.add("dtstamp", stamp)
                ev.add("dtstart", entry.time_slot)
                ev.add("dtend", entry.end_time)
                ev.add("summary", exp.name or exp.id)
                if exp.description:
                    ev.add("description", exp.description)
                if exp.address:
                    ev.add("location", exp.address)
                if exp.location:
                    ev.add("geo", (exp.location.latitude, exp.location.longitude))
                cal.add_component(ev)
        return ExportArtifact(
            format="calendar",
            filename=f"{_slug(itinerary.name)}_itinerary.ics",
            content=cal.to_ical().decode("utf-8"),
            mime_type="text/calendar",
        )

    def to_share_link(self, itinerary: Itinerary) -> ExportArtifact:
        digest = {
            "id": itinerary.id,
            "name": itinerary.name,
            "description": itinerary.description,
            "start_date": itinerary.start_date.isoformat(),
            "end_date": itinerary.end_date.isoformat(),
            "experience_count": itinerary.total_experiences(),
            "estimated_cost": itinerary.estimated_cost(),
        }
        share_id = base64.urlsafe_b64encode(
            json.dumps(digest, separators=(",", ":")).encode("utf-8")
        ).decode("ascii")
        return ExportArtifact(
            format="share",
            filename="",
            content=f"{self.share_base_url}?share={share_id}",
            mime_type="text/uri-list",
        )

    def to_text(self, itinerary: Itinerary) -> ExportArtifact:
        out = [
            itinerary.name,
            f"{itinerary.start_date:%a %d %b %Y} to {itinerary.end_date:%a %d %b %Y} "
            f"({itinerary.duration_in_days} days, {itinerary.total_experiences()} experiences)",
        ]
        if itinerary.description:
            out.append(itinerary.description)
        for i, day in enumerate(itinerary.days, start=1):
            out.append("")
            out.append(f"Day {i}: {day.date:%A %d %B}")
            if not day.experiences:
                out.append("  (nothing planned)")
            for entry in day.experiences:
                fee = entry.experience.admission_fee
                cost = f"  [{fee:.2f}]" if fee else ""
                out.append(
                    f"  {entry.time_slot:%H:%M}-{entry.end_time:%H:%M}  "
                    f"{entry.experience.name or entry.experience.id}{cost}"
                )
            if day.notes:
                out.append(f"  Notes: {day.notes}")
        out.append("")
        out.append(f"Estimated admission total: {itinerary.estimated_cost():.2f}")
        return ExportArtifact(
            format="text",
            filename=f"{_slug(itinerary.name)}_itinerary.txt",
            content="\n".join(out) + "\n",
            mime_type="text/plain",
        )
