from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from ..workflow.rules import Action, ForcePayload, ReviewPayload


class ReviewForm(FlaskForm):
    action = StringField("Action", validators=[DataRequired(), AnyOf([str(a) for a in Action])])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=5000)])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=5000)])
    sector = StringField("Sector", validators=[Optional(), Length(max=100)])
    target_status = StringField("Target status", validators=[Optional(), Length(max=30)])
    interview_date = StringField("Interview date", validators=[Optional(), Length(max=50)])
    interview_location = StringField("Interview location", validators=[Optional(), Length(max=255)])

    def to_payload(self):
        """Build the closed payload for the chosen action."""
        if self.action.data == Action.FORCE:
            if not self.target_status.data:
                return None
            return ForcePayload(
                target_status=self.target_status.data,
                notes=self.notes.data,
                reason=self.reason.data,
                interview_date=self.interview_date.data,
                interview_location=self.interview_location.data,
            )
        return ReviewPayload(notes=self.notes.data, reason=self.reason.data, sector=self.sector.data)
