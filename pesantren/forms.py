from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField
from wtforms.validators import DataRequired, Email, Length


class _ApiForm(FlaskForm):
    # CSRFProtect already checks the X-CSRFToken header on every API request
    class Meta:
        csrf = False


class LoginForm(_ApiForm):
    email = StringField('Email', validators=[DataRequired(message='Email wajib diisi'), Email(message='Format email tidak valid')])
    password = PasswordField('Password', validators=[DataRequired(message='Password wajib diisi')])


class ForgotPasswordForm(_ApiForm):
    email = StringField('Email', validators=[DataRequired(message='Email wajib diisi'), Email(message='Format email tidak valid')])


class ConfirmResetPasswordForm(_ApiForm):
    oobCode = StringField('Kode reset', validators=[DataRequired(message='Reset code and password are required')])
    password = PasswordField('Password baru', validators=[
        DataRequired(message='Reset code and password are required'),
        Length(min=6, message='Password terlalu lemah, minimal 6 karakter'),
    ])
