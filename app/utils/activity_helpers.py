from sqlalchemy.ext.asyncio import AsyncSession
from app.models.support.activity_models import SystemActivity
from app.constants.activity_templates import ACTIVITY_TEMPLATES
from app.constants.activity_codes import ActivityCode


async def emit_activity(
    db: AsyncSession,
    *,
    code: ActivityCode,
    subject_id: int | None,
    detail: str | None = None,
    **context,
):
    template = ACTIVITY_TEMPLATES.get(code)
    if not template:
        raise ValueError(f"No activity template for code {code}")

    try:
        message = template.format(**context)
    except KeyError as e:
        raise ValueError(
            f"Missing activity context key: {e.args[0]} for {code}"
        )

    db.add(
        SystemActivity(
            activity_type=code.value,
            subject_id=subject_id,
            message=message,
            detail=detail,
        )
    )
