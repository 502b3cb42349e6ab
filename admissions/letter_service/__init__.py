import io
import textwrap
from datetime import UTC, datetime

import pikepdf
from flask import current_app
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

_BRAND_RGB = (0.16, 0.50, 0.73)
_TEXT_RGB = (0.20, 0.29, 0.37)
_WRAP_WIDTH = 88


class LetterNotAvailable(ValueError):
    """The application's status does not call for this letter."""


def parse_signatories(raw):
    """Parse ``"Name|Role;Name|Role"`` into ``[(name, role), ...]``."""
    signatories = []
    for chunk in (raw or "").split(";"):
        if not chunk.strip():
            continue
        name, _, role = chunk.partition("|")
        signatories.append((name.strip(), role.strip()))
    return signatories


def _signatories(signatories):
    if signatories is not None:
        return signatories
    return parse_signatories(current_app.config.get("LETTER_SIGNATORIES", ""))


def _level_text(application):
    return (application.admission_level or "").capitalize()


def _format_date(value):
    if not value:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime("%d %B %Y")


def generate_admission_letter(application, signatories=None):
    """Letter of admission for an approved application. Returns PDF bytes."""
    if application.status != "approved":
        raise LetterNotAvailable(f"No admission letter for an application that is {application.status}.")
    org = current_app.config["ORGANIZATION_NAME"]
    level = _level_text(application)
    paragraphs = [
        f"We are pleased to inform you that your application for ministerial {level.lower()} has been "
        f"approved by the {org}.",
        "This admission is granted based on your demonstrated commitment to ministry, theological training "
        f"and service to the church. You are hereby recognized to serve in the capacity of {level} "
        f"within the {org}.",
    ]
    details = [
        ("Admission Level:", level),
        ("Church:", application.church_name),
        ("Association:", application.association),
        ("Sector:", application.sector or ""),
        ("Fellowship:", application.fellowship),
    ]
    closing = ["We congratulate you and pray for God's guidance in your ministry."]
    return _render(application, "LETTER OF ADMISSION", paragraphs, details, closing, _signatories(signatories))


def generate_rejection_letter(application, signatories=None):
    """Status letter for a rejected application. Returns PDF bytes."""
    if application.status != "rejected":
        raise LetterNotAvailable(f"No rejection letter for an application that is {application.status}.")
    level = _level_text(application)
    paragraphs = [
        f"Thank you for your application for ministerial {level.lower()}. After careful review, "
        "we regret to inform you that your application has not been approved at this time.",
    ]
    details = [("Reason:", application.rejection_reason or "")]
    closing = [
        "You are welcome to address the matters above and apply again in a future admission cycle.",
        "May God's grace be with you.",
    ]
    return _render(
        application, "APPLICATION STATUS NOTIFICATION", paragraphs, details, closing, _signatories(signatories)
    )


def generate_interview_letter(application, signatories=None):
    """Interview invitation for a scheduled interview. Returns PDF bytes."""
    if application.status != "interview_scheduled":
        raise LetterNotAvailable(f"No interview letter for an application that is {application.status}.")
    level = _level_text(application)
    paragraphs = [
        f"We are pleased to inform you that your application for ministerial {level.lower()} has "
        "progressed to the interview stage.",
        "You are hereby invited to attend an interview session with the ministerial board.",
    ]
    details = [
        ("Applicant Name:", application.full_name),
        ("Admission Level:", level),
        ("Church:", application.church_name),
        ("Interview Date:", _format_date(application.interview_date)),
        ("Location:", application.interview_location or ""),
    ]
    closing = [
        "Please bring a valid identification document, your original certificates and testimonials, "
        "and a copy of your application form.",
        "Please confirm your attendance by contacting the office at least 48 hours before the scheduled date.",
    ]
    return _render(application, "INTERVIEW INVITATION", paragraphs, details, closing, _signatories(signatories))


LETTER_GENERATORS = {
    "approved": generate_admission_letter,
    "rejected": generate_rejection_letter,
    "interview_scheduled": generate_interview_letter,
}


def letter_for(application, signatories=None):
    generator = LETTER_GENERATORS.get(application.status)
    if generator is None:
        raise LetterNotAvailable(f"No letter is issued for an application that is {application.status}.")
    return generator(application, signatories)


def _render(application, title, paragraphs, details, closing, signatories):
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    org = current_app.config["ORGANIZATION_NAME"]
    subtitle = current_app.config["ORGANIZATION_SUBTITLE"]

    # Letterhead band
    c.setFillColorRGB(*_BRAND_RGB)
    c.rect(0, height - 1.6 * inch, width, 1.6 * inch, stroke=0, fill=1)
    c.setFillColorRGB(1, 1, 1)
    c.setFont("Helvetica-Bold", 20)
    c.drawCentredString(width / 2, height - 0.8 * inch, org)
    c.setFont("Helvetica", 11)
    c.drawCentredString(width / 2, height - 1.1 * inch, subtitle)

    c.setFillColorRGB(*_TEXT_RGB)
    c.setFont("Helvetica", 10)
    c.drawString(0.8 * inch, height - 2.1 * inch, _format_date(datetime.now(UTC)))

    c.setFont("Helvetica-Bold", 15)
    c.drawCentredString(width / 2, height - 2.6 * inch, title)
    c.setStrokeColorRGB(*_BRAND_RGB)
    c.setLineWidth(0.8)
    c.line(0.8 * inch, height - 2.75 * inch, width - 0.8 * inch, height - 2.75 * inch)

    y = height - 3.2 * inch
    c.setFont("Helvetica", 11)
    c.drawString(0.8 * inch, y, f"Dear {application.full_name},")
    y -= 0.35 * inch

    y = _draw_paragraphs(c, paragraphs, y)

    for label, value in details:
        c.setFont("Helvetica-Bold", 11)
        c.drawString(1.0 * inch, y, label)
        c.setFont("Helvetica", 11)
        for line in textwrap.wrap(str(value), 60) or [""]:
            c.drawString(2.6 * inch, y, line)
            y -= 0.25 * inch
    y -= 0.15 * inch

    y = _draw_paragraphs(c, closing, y)

    # Signature block, up to two per row
    y -= 0.3 * inch
    for index, (name, role) in enumerate(signatories):
        x = 0.8 * inch if index % 2 == 0 else width / 2 + 0.2 * inch
        c.line(x, y, x + 2.4 * inch, y)
        c.setFont("Helvetica-Bold", 10)
        c.drawString(x, y - 0.2 * inch, name)
        c.setFont("Helvetica", 10)
        c.drawString(x, y - 0.38 * inch, role)
        if index % 2 == 1:
            y -= 0.9 * inch

    c.setFont("Helvetica-Oblique", 8)
    c.drawCentredString(width / 2, 0.5 * inch, f"{org} • Ministerial Admission")

    c.showPage()
    c.save()
    buf.seek(0)
    return _stamp_metadata(buf, title, application, org)


def _draw_paragraphs(c, paragraphs, y):
    c.setFont("Helvetica", 11)
    for paragraph in paragraphs:
        for line in textwrap.wrap(paragraph, _WRAP_WIDTH):
            c.drawString(0.8 * inch, y, line)
            y -= 0.24 * inch
        y -= 0.14 * inch
    return y


def _stamp_metadata(buf, title, application, org):
    """Embed document metadata so letters are identifiable once downloaded."""
    out = io.BytesIO()
    with pikepdf.open(buf) as pdf:
        with pdf.open_metadata() as meta:
            meta["dc:title"] = f"{title.title()}: {application.full_name}"
            meta["dc:creator"] = [org]
            meta["dc:description"] = f"Application {application.public_id} ({application.status})"
            meta["pdf:Producer"] = org
        pdf.save(out)
    return out.getvalue()
