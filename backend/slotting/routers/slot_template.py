from uuid import UUID

from django.shortcuts import get_object_or_404
from ninja import Router

from slotting.auth import get_optional_principal
from slotting.errors import ForbiddenError
from slotting.models import MissionSlotTemplate
from slotting.permissions import PermissionService
from slotting.schemas import MissionSlotTemplateCreateSchema, MissionSlotTemplateUpdateSchema
from slotting.serializers import public_slot_template, slot_template_details
from slotting.templates import (
    SlotTemplateService, can_edit_template, can_view_template, ordered_templates, visible_templates,
)

router = Router()


def _permission_service(request) -> PermissionService:
    get_optional_principal(request)
    return PermissionService.for_request(request)


def _get_editable_template(request, uid: UUID) -> MissionSlotTemplate:
    template = get_object_or_404(MissionSlotTemplate.objects.select_related('creator'), uid=uid)
    if not can_edit_template(template, PermissionService.for_request(request)):
        raise ForbiddenError('Only the template creator or an admin may change this template', reason='not_template_creator')
    return template


def _slot_groups(groups):
    return None if groups is None else [group.model_dump() for group in groups]


@router.get('/', auth=None)
def list_mission_slot_templates(request, limit: int = 25, offset: int = 0):
    """List slot templates visible to the caller"""
    templates = ordered_templates(
        visible_templates(MissionSlotTemplate.objects.select_related('creator'), _permission_service(request))
    )
    return {
        'slotTemplates': [public_slot_template(template) for template in templates[offset:offset + limit]],
        'limit': limit,
        'offset': offset,
        'total': templates.count(),
    }


@router.get('/{uid}', auth=None)
def get_mission_slot_template(request, uid: UUID):
    """Get a single slot template including its slot groups"""
    template = get_object_or_404(MissionSlotTemplate.objects.select_related('creator'), uid=uid)
    if not can_view_template(template, _permission_service(request)):
        raise ForbiddenError('You are not allowed to view this slot template', reason='slot_template_not_visible')
    return {'slotTemplate': slot_template_details(template)}


@router.post('/')
def create_mission_slot_template(request, payload: MissionSlotTemplateCreateSchema):
    """Create a new slot template owned by the caller"""
    template = SlotTemplateService().create_template(
        request.principal,
        payload.title,
        slot_groups=_slot_groups(payload.slotGroups),
        visibility=payload.visibility,
    )
    return {'slotTemplate': slot_template_details(template)}


@router.patch('/{uid}')
def update_mission_slot_template(request, uid: UUID, payload: MissionSlotTemplateUpdateSchema):
    """Update a slot template"""
    template = _get_editable_template(request, uid)
    template = SlotTemplateService().update_template(
        template,
        title=payload.title,
        slot_groups=_slot_groups(payload.slotGroups),
        visibility=payload.visibility,
    )
    return {'slotTemplate': slot_template_details(template)}


@router.delete('/{uid}')
def delete_mission_slot_template(request, uid: UUID):
    """Delete a slot template"""
    SlotTemplateService().delete_template(_get_editable_template(request, uid))
    return {'success': True}
