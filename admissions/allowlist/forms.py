from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional


class ApprovePhoneForm(FlaskForm):
    phone_number = StringField("Phone number", validators=[DataRequired(), Length(max=20)])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])


class ChangePhoneForm(FlaskForm):
    new_phone_number = StringField("New phone number", validators=[DataRequired(), Length(max=20)])
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=2000)])
