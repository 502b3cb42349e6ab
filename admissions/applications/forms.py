from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField, FileRequired
from wtforms import DateField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional

from ..models import ADMISSION_LEVELS, MARITAL_STATUSES


class ApplicationForm(FlaskForm):
    full_name = StringField("Full name", validators=[DataRequired(), Length(max=255)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    phone = StringField("Phone", validators=[DataRequired(), Length(max=20)])
    date_of_birth = DateField("Date of birth", validators=[Optional()])
    marital_status = StringField("Marital status", validators=[Optional(), AnyOf(MARITAL_STATUSES)])
    spouse_name = StringField("Spouse name", validators=[Optional(), Length(max=255)])
    photo_url = StringField("Photo URL", validators=[Optional(), Length(max=500)])
    admission_level = StringField("Admission level", validators=[DataRequired(), AnyOf(ADMISSION_LEVELS)])
    church_name = StringField("Church", validators=[DataRequired(), Length(max=255)])
    fellowship = StringField("Fellowship", validators=[DataRequired(), Length(max=255)])
    association = StringField("Association", validators=[DataRequired(), Length(max=255)])
    theological_institution = StringField("Theological institution", validators=[Optional(), Length(max=255)])
    theological_qualification = StringField("Theological qualification", validators=[Optional(), Length(max=255)])
    mentor_name = StringField("Mentor name", validators=[Optional(), Length(max=255)])
    mentor_contact = StringField("Mentor contact", validators=[Optional(), Length(max=50)])


class DraftUpdateForm(FlaskForm):
    """Partial edit of a draft. Only keys present in the request are applied."""

    full_name = StringField("Full name", validators=[Optional(), Length(min=1, max=255)])
    email = StringField("Email", validators=[Optional(), Email(), Length(max=255)])
    date_of_birth = DateField("Date of birth", validators=[Optional()])
    marital_status = StringField("Marital status", validators=[Optional(), AnyOf(MARITAL_STATUSES)])
    spouse_name = StringField("Spouse name", validators=[Optional(), Length(max=255)])
    photo_url = StringField("Photo URL", validators=[Optional(), Length(max=500)])
    admission_level = StringField("Admission level", validators=[Optional(), AnyOf(ADMISSION_LEVELS)])
    church_name = StringField("Church", validators=[Optional(), Length(min=1, max=255)])
    fellowship = StringField("Fellowship", validators=[Optional(), Length(min=1, max=255)])
    association = StringField("Association", validators=[Optional(), Length(min=1, max=255)])
    theological_institution = StringField("Theological institution", validators=[Optional(), Length(max=255)])
    theological_qualification = StringField("Theological qualification", validators=[Optional(), Length(max=255)])
    mentor_name = StringField("Mentor name", validators=[Optional(), Length(max=255)])
    mentor_contact = StringField("Mentor contact", validators=[Optional(), Length(max=50)])


class DocumentForm(FlaskForm):
    document_type = StringField("Document type", validators=[DataRequired(), Length(max=100)])
    file = FileField(
        "Document",
        validators=[FileRequired(), FileAllowed(["pdf", "jpg", "jpeg", "png"], "PDF or image files only.")],
    )
