"""Role models and job-context construction."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TargetUniversity(BaseModel):
    """A university a role prefers candidates from."""

    name: str
    required_gpa: float


class Role(BaseModel):
    """An open role that CVs are scored against."""

    id: str
    job_title: str
    description: Optional[str] = None
    required_skills: list[str] = Field(default_factory=list)
    target_universities: list[TargetUniversity] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


def build_job_context(
    role: Optional[Role] = None,
    job_description: Optional[str] = None,
) -> Optional[str]:
    """Build the free-text job context sent alongside a CV.

    Args:
        role: Optional role to describe.
        job_description: Optional free-text description or extra notes.

    Returns:
        The context string, or None when there is nothing to send.
    """
    extra = (job_description or "").strip() or None
    if role is None:
        return extra

    parts = [f"Job Title: {role.job_title}"]
    if role.description:
        parts.append(f"Job Description: {role.description}")
    if role.required_skills:
        parts.append(f"Required Skills: {', '.join(role.required_skills)}")
    if role.target_universities:
        universities = ", ".join(
            f"{u.name} (min GPA: {u.required_gpa:g})" for u in role.target_universities
        )
        parts.append(f"Target Universities: {universities}")

    role_context = "\n\n".join(parts)
    if extra:
        return f"{role_context}\n\n---\n\nAdditional context:\n{extra}"
    return role_context
