from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed
from wtforms import (StringField, PasswordField, TextAreaField, SelectField, IntegerField,
                     SubmitField, BooleanField, DateField, TimeField)
from wtforms.validators import (DataRequired, Email, Length, EqualTo, ValidationError,
                                Optional, NumberRange, URL)
from academy import firestore_dao as dao

LEVEL_CHOICES = [('beginner', 'Beginner'), ('intermediate', 'Intermediate'), ('advanced', 'Advanced')]
PLATFORM_CHOICES = [('zoom', 'Zoom'), ('meet', 'Google Meet'), ('teams', 'Microsoft Teams'), ('custom', 'Custom link')]
ROLE_CHOICES = [('student', 'Student'), ('instructor', 'Instructor'), ('admin', 'Admin'), ('super_admin', 'Super admin')]
STATUS_CHOICES = [('active', 'Active'), ('suspended', 'Suspended'), ('pending', 'Pending')]
EXPERIENCE_CHOICES = [('none', 'No experience'), ('beginner', 'Beginner'), ('intermediate', 'Intermediate'), ('advanced', 'Advanced')]


class RegistrationForm(FlaskForm):
    first_name = StringField('First name', validators=[DataRequired(message='Enter your first name'), Length(max=60)])
    last_name = StringField('Last name', validators=[DataRequired(message='Enter your last name'), Length(max=60)])
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    phone = StringField('Phone', validators=[Optional(), Length(min=10, max=20, message='Enter a valid phone number')])
    password = PasswordField('Password', validators=[DataRequired(message='Enter a password'), Length(min=6, message='Use at least 6 characters')])
    confirm_password = PasswordField('Confirm password', validators=[DataRequired(message='Confirm your password'), EqualTo('password', message='Passwords do not match')])
    experience = SelectField('Experience', choices=EXPERIENCE_CHOICES, default='none')
    learning_goals = TextAreaField('Learning goals', validators=[Optional(), Length(max=500)])
    submit = SubmitField('Create account')

    def validate_phone(self, phone):
        if phone.data:
            cleaned = ''.join(filter(str.isdigit, phone.data))
            if len(cleaned) < 10:
                raise ValidationError('Enter a valid phone number.')

    def validate_email(self, email):
        if dao.get_user_by_email(email.data):
            raise ValidationError('An account with this email already exists.')


class LoginForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    password = PasswordField('Password', validators=[DataRequired(message='Enter your password')])
    remember_id = BooleanField('Remember email')
    submit = SubmitField('Sign in')


class ForgotPasswordForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    submit = SubmitField('Send reset link')


class ProfileForm(FlaskForm):
    display_name = StringField('Name', validators=[DataRequired(message='Enter your name'), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    bio = TextAreaField('Bio', validators=[Optional(), Length(max=500)])
    photo = FileField('Profile photo', validators=[Optional(), FileAllowed(['png', 'jpg', 'jpeg', 'webp'], 'Images only')])
    submit = SubmitField('Save')


class CourseForm(FlaskForm):
    title = StringField('Title', validators=[DataRequired(message='Enter a course title'), Length(max=200)])
    short_description = StringField('Short description', validators=[Optional(), Length(max=300)])
    description = TextAreaField('Description', validators=[DataRequired(message='Describe the course')])
    category = StringField('Category', validators=[DataRequired(message='Enter a category'), Length(max=80)])
    level = SelectField('Level', choices=LEVEL_CHOICES)
    price = IntegerField('Price (INR)', validators=[Optional(), NumberRange(min=0)], default=0)
    original_price = IntegerField('Original price (INR)', validators=[Optional(), NumberRange(min=0)])
    duration = StringField('Duration', validators=[Optional(), Length(max=50)])
    tags = StringField('Tags (comma separated)', validators=[Optional(), Length(max=300)])
    available = BooleanField('Open for enrollment', default=True)
    thumbnail = FileField('Thumbnail', validators=[Optional(), FileAllowed(['png', 'jpg', 'jpeg', 'webp'], 'Images only')])
    submit = SubmitField('Save course')

    def tag_list(self):
        return [t.strip() for t in (self.tags.data or '').split(',') if t.strip()]


class LessonForm(FlaskForm):
    title = StringField('Lesson title', validators=[DataRequired(message='Enter a lesson title'), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional()])
    video_url = StringField('Video URL', validators=[Optional(), URL(message='Enter a valid URL')])
    duration_minutes = IntegerField('Duration (minutes)', validators=[Optional(), NumberRange(min=0)], default=0)
    is_preview = BooleanField('Free preview')
    submit = SubmitField('Add lesson')


class ReviewForm(FlaskForm):
    rating = SelectField('Rating', choices=[(5, '5 stars'), (4, '4 stars'), (3, '3 stars'), (2, '2 stars'), (1, '1 star')], coerce=int)
    title = StringField('Title', validators=[DataRequired(message='Give your review a title'), Length(max=200)])
    content = TextAreaField('Review', validators=[DataRequired(message='Write your review'), Length(max=2000)])
    submit = SubmitField('Submit review')


class ScheduledClassForm(FlaskForm):
    course_id = SelectField('Course', choices=[])
    title = StringField('Title', validators=[DataRequired(message='Enter a class title'), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional()])
    date = DateField('Date', validators=[DataRequired(message='Pick a date')])
    time = TimeField('Start time', validators=[DataRequired(message='Pick a start time')])
    duration = IntegerField('Duration (minutes)', validators=[DataRequired(), NumberRange(min=15, max=480)], default=60)
    platform = SelectField('Platform', choices=PLATFORM_CHOICES)
    meeting_url = StringField('Meeting link', validators=[Optional(), URL(message='Enter a valid URL')])
    submit = SubmitField('Schedule class')


class RoleForm(FlaskForm):
    role = SelectField('Role', choices=ROLE_CHOICES)
    submit = SubmitField('Update role')


class StatusForm(FlaskForm):
    status = SelectField('Status', choices=STATUS_CHOICES)
    submit = SubmitField('Update status')


class AssignStudentForm(FlaskForm):
    instructor_id = SelectField('Instructor', choices=[])
    student_id = SelectField('Student', choices=[])
    course_id = StringField('Course ID (optional)', validators=[Optional()])
    submit = SubmitField('Assign')


class ContactForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(message='Enter your name'), Length(max=120)])
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    subject = StringField('Subject', validators=[DataRequired(message='Enter a subject'), Length(max=200)])
    message = TextAreaField('Message', validators=[DataRequired(message='Write a message'), Length(max=2000)])
    submit = SubmitField('Send message')
