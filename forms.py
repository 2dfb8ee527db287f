from flask_wtf import FlaskForm
from wtforms import (
    BooleanField,
    FieldList,
    IntegerField,
    StringField,
    TextAreaField,
    SubmitField,
)
from wtforms.validators import (
    DataRequired,
    Email,
    Length,
    Regexp,
)

# Empty, #RGB, #RRGGBB or #RRGGBBAA
COLOR_PATTERN = r"^(#(?:[0-9A-Fa-f]{3}|[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8}))?$"


def _color_field():
    return StringField(
        "Color",
        validators=[
            Regexp(COLOR_PATTERN, message="Color must be a hex value such as #808080."),
        ],
    )


def _icon_field():
    return StringField(
        "Icon",
        validators=[Length(max=64, message="Icon name must be 64 characters or fewer.")],
    )


class CategoryForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="Category name is required."),
            Length(max=80, message="Category name must be 80 characters or fewer."),
        ],
    )
    description = TextAreaField("Description")
    color = _color_field()
    icon_name = _icon_field()
    submit = SubmitField("Save Category")


class PriorityForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="Priority name is required."),
            Length(max=80, message="Priority name must be 80 characters or fewer."),
        ],
    )
    value = StringField(
        "Value",
        validators=[
            Length(max=80, message="Priority value must be 80 characters or fewer."),
            Regexp(
                r"^[^\s]*$",
                message="Priority value may not contain spaces.",
            ),
        ],
    )
    color = _color_field()
    icon_name = _icon_field()
    submit = SubmitField("Save Priority")


class StatusForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="Status name is required."),
            Length(max=80, message="Status name must be 80 characters or fewer."),
        ],
    )
    value = StringField(
        "Value",
        validators=[
            Length(max=80, message="Status value must be 80 characters or fewer."),
            Regexp(
                r"^[^\s]*$",
                message="Status value may not contain spaces.",
            ),
        ],
    )
    is_completion_status = BooleanField("Marks the task as done")
    color = _color_field()
    icon_name = _icon_field()
    submit = SubmitField("Save Status")


class TagForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="Tag name is required."),
            Length(max=64, message="Tag name must be 64 characters or fewer."),
        ],
    )
    color = _color_field()
    icon_name = _icon_field()
    submit = SubmitField("Save Tag")


class ProjectForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="Project name is required."),
            Length(max=100, message="Project name must be 100 characters or fewer."),
        ],
    )
    description = TextAreaField("Description")
    color = _color_field()
    icon_name = _icon_field()
    submit = SubmitField("Save Project")


class UserForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="User name is required."),
            Length(max=80, message="User name must be 80 characters or fewer."),
        ],
    )
    email = StringField(
        "Email",
        validators=[
            DataRequired(message="Email is required."),
            Email(message="Please enter a valid email address."),
            Length(max=120, message="Email must be 120 characters or fewer."),
        ],
    )
    phone = StringField("Phone", [Length(max=40)])
    mobile = StringField("Mobile", [Length(max=40)])
    avatar_url = StringField(
        "Avatar URL",
        validators=[
            Length(max=255),
            Regexp(r"^(https?://\S+)?$", message="Avatar URL must start with http:// or https://."),
        ],
    )
    initials = StringField("Initials", [Length(max=4, message="Initials must be 4 characters or fewer.")])
    submit = SubmitField("Save User")


class TaskForm(FlaskForm):
    name = TextAreaField("Name", [Length(max=500, message="Task name must be 500 characters or fewer.")])
    content = TextAreaField("Content")
    category = StringField("Category", [Length(max=80)])
    priority = StringField("Priority", [Length(max=80)])
    status = StringField("Status", [Length(max=80)])
    due_date = StringField("Due Date")
    project_id = IntegerField("Project")
    tag_ids = FieldList(IntegerField("Tag"))
    assigned_user_ids = FieldList(IntegerField("Assignee"))
    attachments = FieldList(StringField("Attachment", [Length(max=2048)]))
    submit = SubmitField("Save Task")
