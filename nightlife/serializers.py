"""JSON projections of ORM rows shared by several blueprints."""
from __future__ import annotations

from datetime import date, datetime

from .models import (
    Comment,
    ConsumableTemplate,
    Employee,
    EmploymentHistory,
    Establishment,
    EstablishmentCategory,
    EstablishmentConsumable,
    EstablishmentOwner,
    ModerationQueueItem,
    Notification,
    OwnershipRequest,
    Report,
    User,
)


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


def user_summary(u: User | None) -> dict | None:
    if u is None:
        return None
    return {"id": u.id, "pseudonym": u.pseudonym, "email": u.email, "account_type": u.account_type}


def user_public(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "pseudonym": u.pseudonym,
        "role": u.role,
        "account_type": u.account_type,
        "is_active": u.is_active,
        "created_at": _iso(u.created_at),
    }


def category(c: EstablishmentCategory) -> dict:
    return {"id": c.id, "name": c.name, "icon": c.icon, "color": c.color}


def establishment(e: Establishment) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "address": e.address,
        "description": e.description,
        "phone": e.phone,
        "website": e.website,
        "logo_url": e.logo_url,
        "opening_hours": e.opening_hours,
        "services": e.services or [],
        "category_id": e.category_id,
        "zone": e.zone,
        "grid_row": e.grid_row,
        "grid_col": e.grid_col,
        "location": e.location,
        "ladydrink": e.ladydrink,
        "barfine": e.barfine,
        "rooms": e.rooms,
        "pricing": e.pricing,
        "status": e.status,
        "created_by": e.created_by,
        "created_at": _iso(e.created_at),
        "updated_at": _iso(e.updated_at),
    }


def establishment_summary(e: Establishment | None) -> dict | None:
    if e is None:
        return None
    return {"id": e.id, "name": e.name, "address": e.address, "zone": e.zone, "status": e.status, "logo_url": e.logo_url}


def employee(emp: Employee, *, include_private: bool = False) -> dict:
    data = {
        "id": emp.id,
        "name": emp.name,
        "nickname": emp.nickname,
        "age": emp.age,
        "sex": emp.sex,
        "nationality": emp.nationality,
        "description": emp.description,
        "photos": emp.photos or [],
        "social_media": emp.social_media,
        "status": emp.status,
        "is_verified": emp.is_verified,
        "is_freelance": emp.is_freelance,
        "vip_expires_at": _iso(emp.vip_expires_at),
        "current_establishment_id": emp.current_establishment_id,
        "created_by": emp.created_by,
        "user_id": emp.user_id,
        "is_self_profile": emp.is_self_profile,
        "created_at": _iso(emp.created_at),
        "updated_at": _iso(emp.updated_at),
    }
    if include_private:
        data.update(
            {
                "is_hidden": emp.is_hidden,
                "hidden_by": emp.hidden_by,
                "hidden_at": _iso(emp.hidden_at),
                "hide_reason": emp.hide_reason,
                "self_removal_requested": emp.self_removal_requested,
                "self_removal_info": emp.self_removal_info,
                "self_removal_requested_at": _iso(emp.self_removal_requested_at),
            }
        )
    return data


def employment(row: EmploymentHistory) -> dict:
    return {
        "id": row.id,
        "employee_id": row.employee_id,
        "establishment_id": row.establishment_id,
        "position": row.position,
        "start_date": _iso(row.start_date),
        "end_date": _iso(row.end_date),
        "is_current": row.is_current,
        "notes": row.notes,
        "created_by": row.created_by,
        "created_at": _iso(row.created_at),
    }


def comment(c: Comment) -> dict:
    return {
        "id": c.id,
        "employee_id": c.employee_id,
        "user_id": c.user_id,
        "content": c.content,
        "rating": c.rating,
        "status": c.status,
        "created_at": _iso(c.created_at),
        "updated_at": _iso(c.updated_at),
    }


def report(r: Report) -> dict:
    return {
        "id": r.id,
        "comment_id": r.comment_id,
        "reported_by": r.reported_by,
        "reason": r.reason,
        "status": r.status,
        "reviewed_by": r.reviewed_by,
        "reviewed_at": _iso(r.reviewed_at),
        "created_at": _iso(r.created_at),
    }


def queue_item(item: ModerationQueueItem) -> dict:
    return {
        "id": item.id,
        "item_type": item.item_type,
        "item_id": item.item_id,
        "submitted_by": item.submitted_by,
        "status": item.status,
        "moderator_id": item.moderator_id,
        "moderator_notes": item.moderator_notes,
        "request_metadata": item.request_metadata,
        "verification_proof": item.verification_proof or [],
        "reviewed_at": _iso(item.reviewed_at),
        "created_at": _iso(item.created_at),
    }


def consumable(row: EstablishmentConsumable, template: ConsumableTemplate | None) -> dict:
    return {
        "id": row.id,
        "establishment_id": row.establishment_id,
        "consumable_id": row.consumable_id,
        "price": row.price,
        "is_available": row.is_available,
        "consumable": (
            {
                "id": template.id,
                "name": template.name,
                "category": template.category,
                "icon": template.icon,
                "default_price": template.default_price,
            }
            if template
            else None
        ),
    }


def owner_link(link: EstablishmentOwner) -> dict:
    return {
        "id": link.id,
        "user_id": link.user_id,
        "establishment_id": link.establishment_id,
        "owner_role": link.owner_role,
        "permissions": link.permissions or {},
        "assigned_by": link.assigned_by,
        "assigned_at": _iso(link.assigned_at),
    }


def ownership_request(req: OwnershipRequest) -> dict:
    return {
        "id": req.id,
        "user_id": req.user_id,
        "establishment_id": req.establishment_id,
        "documents_urls": req.documents_urls or [],
        "verification_code": req.verification_code,
        "request_message": req.request_message,
        "contact_me": req.contact_me,
        "status": req.status,
        "admin_notes": req.admin_notes,
        "reviewed_by": req.reviewed_by,
        "reviewed_at": _iso(req.reviewed_at),
        "created_at": _iso(req.created_at),
        "updated_at": _iso(req.updated_at),
    }


def notification(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "link": n.link,
        "related_entity_type": n.related_entity_type,
        "related_entity_id": n.related_entity_id,
        "is_read": n.is_read,
        "created_at": _iso(n.created_at),
    }
