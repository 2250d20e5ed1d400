"""
Career agent tools

Each tool edits or reads the user's curated profile document
(``Profile.filtered_data``) and returns a JSON-serialisable result:

    {"success": True, "message": "...", ...}
    {"success": False, "error": "..."}

Tools are registered in ``TOOLS`` by the name the model uses to call them.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.utils import timezone

from profiles.models import Profile
from profiles.services import ProfileService

logger = logging.getLogger(__name__)


@dataclass
class CareerTool:
    name: str
    description: str
    handler: Callable[..., Dict[str, Any]]
    required: List[str] = field(default_factory=list)
    optional: List[str] = field(default_factory=list)

    def to_prompt_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "required": self.required,
            "optional": self.optional,
        }


def _new_id() -> str:
    return str(uuid.uuid4())


def _contains(haystack, needle) -> bool:
    if needle in (None, "") or not isinstance(haystack, str):
        return False
    return str(needle).lower() in haystack.lower()


def _string_list(value) -> Optional[List[str]]:
    """
    Normalize a list-of-strings argument. A bare string becomes a one-item
    list; anything else that is not a list returns None.
    """
    if value in (None, ""):
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return None
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _load(user) -> Tuple[Profile, Dict]:
    document = ProfileService.initialize_filtered_data(user)
    return ProfileService.get_profile(user), document


def _save(profile: Profile, document: Dict) -> None:
    profile.filtered_data = document
    profile.save(update_fields=["filtered_data", "updated_at"])


def _missing(arguments: Dict, names: List[str]) -> List[str]:
    return [name for name in names if arguments.get(name) in (None, "", [])]


def _find_experience(
    experiences: List[Dict],
    experience_id: Optional[str] = None,
    title: Optional[str] = None,
    company: Optional[str] = None,
) -> Optional[Dict]:
    if experience_id:
        for experience in experiences:
            if experience.get("id") == experience_id:
                return experience
    if title:
        for experience in experiences:
            if _contains(experience.get("title"), title):
                return experience
    if company:
        for experience in experiences:
            if _contains(experience.get("company"), company):
                return experience
    return None


def _find_project(projects: List[Dict], project_id: Optional[str], title: Optional[str]) -> Optional[Dict]:
    if project_id:
        for project in projects:
            if project.get("id") == project_id:
                return project
    if title:
        for project in projects:
            if _contains(project.get("title"), title):
                return project
    return None


# --------------------------------------------------------------------------- #
# Experiences                                                                 #
# --------------------------------------------------------------------------- #

def add_experience(user, **arguments) -> Dict[str, Any]:
    missing = _missing(arguments, ["title", "company", "start"])
    if missing:
        return {"success": False, "error": f"Missing required information. Need: {', '.join(missing)}"}

    profile, document = _load(user)
    experience = {
        "id": _new_id(),
        "title": arguments["title"],
        "company": arguments["company"],
        "start": arguments["start"],
        "end": arguments.get("end"),
        "description": arguments.get("description", ""),
        "projects": [],
    }
    document["experiences"].append(experience)
    _save(profile, document)
    return {
        "success": True,
        "message": f"Added experience: {experience['title']} at {experience['company']}",
        "experience": experience,
    }


def get_experiences(user, includeProjects: bool = False, **_) -> Dict[str, Any]:
    _, document = _load(user)
    experiences = []
    for experience in document["experiences"]:
        entry = {key: value for key, value in experience.items() if key != "projects"}
        entry["projectCount"] = len(experience.get("projects") or [])
        if includeProjects:
            entry["projects"] = experience.get("projects") or []
        experiences.append(entry)
    return {
        "success": True,
        "message": f"Found {len(experiences)} experiences",
        "experiences": experiences,
        "experienceCount": len(experiences),
    }


def update_experience(user, **arguments) -> Dict[str, Any]:
    profile, document = _load(user)
    experience = _find_experience(
        document["experiences"],
        arguments.get("experienceId"),
        arguments.get("experienceTitle"),
        arguments.get("experienceCompany"),
    )
    if experience is None:
        return {"success": False, "error": "Experience not found"}

    original = dict(experience)
    updated_fields = []
    for key in ("title", "company", "start", "end", "description"):
        if arguments.get(key) is not None:
            experience[key] = arguments[key]
            updated_fields.append(key)
    if not updated_fields:
        return {"success": False, "error": "No fields to update"}

    _save(profile, document)
    return {
        "success": True,
        "message": f"Updated {', '.join(updated_fields)} for {experience.get('title')} at {experience.get('company')}",
        "experience": experience,
        "originalExperience": original,
    }


# --------------------------------------------------------------------------- #
# Education                                                                   #
# --------------------------------------------------------------------------- #

def add_education(user, **arguments) -> Dict[str, Any]:
    if _missing(arguments, ["school"]):
        return {"success": False, "error": "Missing required information. Need: school"}

    profile, document = _load(user)
    education = {
        "school": arguments["school"],
        "degree": arguments.get("degree"),
        "field": arguments.get("field"),
        "start": arguments.get("start"),
        "end": arguments.get("end"),
    }
    document["education"].append(education)
    _save(profile, document)
    label = f"{education['degree']} at {education['school']}" if education["degree"] else education["school"]
    return {"success": True, "message": f"Added education: {label}", "education": education}


def get_educations(user, **_) -> Dict[str, Any]:
    _, document = _load(user)
    educations = [
        {"index": index, **education}
        for index, education in enumerate(document["education"])
        if isinstance(education, dict)
    ]
    return {
        "success": True,
        "message": f"Found {len(educations)} education entries",
        "educations": educations,
        "educationCount": len(educations),
    }


def update_education(user, **arguments) -> Dict[str, Any]:
    profile, document = _load(user)
    educations = document["education"]

    target = None
    index = arguments.get("educationIndex")
    if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(educations):
        target = educations[index]
    elif arguments.get("school"):
        for education in educations:
            if _contains(education.get("school"), arguments["school"]):
                target = education
                break
    if target is None:
        return {"success": False, "error": "Education entry not found"}

    mapping = {
        "newSchool": "school",
        "newDegree": "degree",
        "newField": "field",
        "newStart": "start",
        "newEnd": "end",
    }
    updated = []
    for argument, key in mapping.items():
        if arguments.get(argument) is not None:
            target[key] = arguments[argument]
            updated.append(key)
    if not updated:
        return {"success": False, "error": "No fields to update"}

    _save(profile, document)
    return {
        "success": True,
        "message": f"Updated {', '.join(updated)} for {target.get('school')}",
        "education": target,
    }


# --------------------------------------------------------------------------- #
# Projects                                                                    #
# --------------------------------------------------------------------------- #

def add_project_to_experience(user, **arguments) -> Dict[str, Any]:
    if _missing(arguments, ["projectTitle"]):
        return {"success": False, "error": "Missing required information. Need: projectTitle"}

    technologies = _string_list(arguments.get("technologies"))
    if technologies is None:
        return {"success": False, "error": "technologies must be a list of strings"}

    profile, document = _load(user)
    lookup = arguments.get("experienceTitle")
    experience = _find_experience(
        document["experiences"],
        arguments.get("experienceId"),
        lookup,
        arguments.get("experienceCompany") or lookup,
    )
    if experience is None:
        return {"success": False, "error": "Experience not found. Add the experience first."}

    project = {
        "id": _new_id(),
        "title": arguments["projectTitle"],
        "description": arguments.get("projectDescription", ""),
        "start": arguments.get("start"),
        "end": arguments.get("end"),
        "technologies": technologies,
        "role": arguments.get("role"),
        "teamSize": arguments.get("teamSize"),
        "updates": [],
    }
    experience.setdefault("projects", []).append(project)
    _save(profile, document)
    return {
        "success": True,
        "message": f"Added project {project['title']} to {experience.get('title')} at {experience.get('company')}",
        "project": project,
        "experienceId": experience.get("id"),
    }


def add_project_work(user, **arguments) -> Dict[str, Any]:
    """
    Record a WDRL update (Work, Decisions, Results, Learnings) on a project.
    """
    missing = _missing(arguments, ["updateTitle", "workDescription"])
    if missing:
        return {"success": False, "error": f"Missing required information. Need: {', '.join(missing)}"}

    profile, document = _load(user)
    experience = _find_experience(
        document["experiences"],
        arguments.get("experienceId"),
        arguments.get("experienceTitle"),
        arguments.get("experienceCompany"),
    )
    candidates = [experience] if experience else document["experiences"]

    project = None
    for candidate in candidates:
        project = _find_project(candidate.get("projects") or [], arguments.get("projectId"), arguments.get("projectTitle"))
        if project is not None:
            break
    if project is None:
        return {"success": False, "error": "Project not found"}

    skills = _string_list(arguments.get("skills"))
    if skills is None:
        return {"success": False, "error": "skills must be a list of strings"}
    update = {
        "id": _new_id(),
        "date": arguments.get("date") or timezone.now().date().isoformat(),
        "title": arguments["updateTitle"],
        "description": arguments["workDescription"],
        "skills": skills,
        "achievements": arguments.get("achievements"),
        "challenges": arguments.get("challenges"),
        "impact": arguments.get("impact"),
        "decisions": arguments.get("decisions"),
        "results": arguments.get("results"),
        "learnings": arguments.get("learnings"),
    }
    project.setdefault("updates", []).append(update)

    known = {skill.lower() for skill in document["skills"] if isinstance(skill, str)}
    new_skills = []
    for skill in skills:
        if skill.lower() not in known:
            known.add(skill.lower())
            new_skills.append(skill)
    document["skills"].extend(new_skills)

    _save(profile, document)
    return {
        "success": True,
        "message": f"Added work update '{update['title']}' to project {project.get('title')}",
        "update": update,
        "newSkills": new_skills,
    }


def get_projects(user, includeUpdates: bool = False, experienceId: Optional[str] = None, **_) -> Dict[str, Any]:
    _, document = _load(user)
    projects = []
    for experience in document["experiences"]:
        if experienceId and experience.get("id") != experienceId:
            continue
        for project in experience.get("projects") or []:
            entry = {key: value for key, value in project.items() if key != "updates"}
            entry.update({
                "experienceId": experience.get("id"),
                "experienceTitle": experience.get("title"),
                "company": experience.get("company"),
                "updateCount": len(project.get("updates") or []),
            })
            if includeUpdates:
                entry["updates"] = project.get("updates") or []
            projects.append(entry)
    return {
        "success": True,
        "message": f"Found {len(projects)} projects",
        "projects": projects,
        "projectCount": len(projects),
    }


def update_project(user, **arguments) -> Dict[str, Any]:
    if arguments.get("technologies") is not None:
        technologies = _string_list(arguments["technologies"])
        if technologies is None:
            return {"success": False, "error": "technologies must be a list of strings"}
        arguments["technologies"] = technologies

    profile, document = _load(user)

    project = None
    for experience in document["experiences"]:
        if arguments.get("experienceId") and experience.get("id") != arguments["experienceId"]:
            continue
        if arguments.get("experienceCompany") and not _contains(experience.get("company"), arguments["experienceCompany"]):
            continue
        project = _find_project(experience.get("projects") or [], arguments.get("projectId"), arguments.get("projectTitle"))
        if project is not None:
            break
    if project is None:
        return {"success": False, "error": "Project not found"}

    updated = []
    for key in ("title", "description", "start", "end", "technologies", "role", "teamSize"):
        if arguments.get(key) is not None:
            project[key] = arguments[key]
            updated.append(key)
    if not updated:
        return {"success": False, "error": "No fields to update"}

    _save(profile, document)
    return {
        "success": True,
        "message": f"Updated {', '.join(updated)} for project {project.get('title')}",
        "project": project,
    }


TOOLS: Dict[str, CareerTool] = {
    tool.name: tool
    for tool in [
        CareerTool(
            "add-experience",
            "Add a work experience. Ask the user for any missing required field first.",
            add_experience,
            required=["title", "company", "start"],
            optional=["end", "description"],
        ),
        CareerTool(
            "get-experiences",
            "List the user's work experiences.",
            get_experiences,
            optional=["includeProjects"],
        ),
        CareerTool(
            "update-experience",
            "Update an experience found by id, title or company.",
            update_experience,
            optional=["experienceId", "experienceTitle", "experienceCompany", "title", "company", "start", "end", "description"],
        ),
        CareerTool(
            "add-education",
            "Add an education entry.",
            add_education,
            required=["school"],
            optional=["degree", "field", "start", "end"],
        ),
        CareerTool("get-educations", "List the user's education entries.", get_educations),
        CareerTool(
            "update-education",
            "Update an education entry found by index or school name.",
            update_education,
            optional=["educationIndex", "school", "newSchool", "newDegree", "newField", "newStart", "newEnd"],
        ),
        CareerTool(
            "add-project-to-experience",
            "Add a project under an experience.",
            add_project_to_experience,
            required=["projectTitle"],
            optional=["experienceId", "experienceTitle", "experienceCompany", "projectDescription", "start", "end", "technologies", "role", "teamSize"],
        ),
        CareerTool(
            "add-project-work",
            "Record work done on a project: what was worked on, decisions, results and learnings.",
            add_project_work,
            required=["updateTitle", "workDescription"],
            optional=[
                "experienceId", "experienceTitle", "experienceCompany", "projectId", "projectTitle", "date",
                "skills", "achievements", "challenges", "impact", "decisions", "results", "learnings",
            ],
        ),
        CareerTool(
            "get-projects",
            "List projects across experiences.",
            get_projects,
            optional=["includeUpdates", "experienceId"],
        ),
        CareerTool(
            "update-project",
            "Update a project found by id or title.",
            update_project,
            optional=["projectId", "projectTitle", "experienceId", "experienceCompany", "title", "description", "start", "end", "technologies", "role", "teamSize"],
        ),
    ]
}


def execute_tool(user, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Run a registered tool by name.

    Unknown tools, bad arguments and missing required fields come back as
    ``{"success": False, "error": ...}`` rather than raising.
    """
    tool = TOOLS.get(name)
    if tool is None:
        return {"success": False, "error": f"Unknown tool: {name}"}
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        return {"success": False, "error": "Tool arguments must be an object"}

    missing = _missing(arguments, tool.required)
    if missing:
        return {"success": False, "error": f"Missing required information. Need: {', '.join(missing)}"}

    allowed = set(tool.required) | set(tool.optional)
    clean_arguments = {key: value for key, value in arguments.items() if key in allowed}
    logger.info("Running career tool %s for user %s", name, user.pk)
    try:
        return tool.handler(user, **clean_arguments)
    except (TypeError, AttributeError, ValueError) as exc:
        logger.warning("Career tool %s rejected arguments %s: %s", name, clean_arguments, exc)
        return {"success": False, "error": f"Invalid arguments for {name}: {exc}"}
