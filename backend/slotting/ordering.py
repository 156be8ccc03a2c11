import logging
from collections import defaultdict

from django.db import DEFAULT_DB_ALIAS

from slotting.models import Mission, MissionSlot, MissionSlotGroup


def _group_sort_key(group: MissionSlotGroup):
    return (group.order_number, group.title.upper(), str(group.uid))


def _slot_sort_key(slot: MissionSlot):
    return (slot.order_number, slot.title.upper(), str(slot.uid))


def recalculate_slot_order_numbers(mission: Mission, using: str = DEFAULT_DB_ALIAS, logger: logging.Logger = None) -> int:
    """
    Renumber all slots of a mission into one global sequence starting at 1.

    Groups are walked by their own order number and slots within a group by
    their current order number. Only slots whose number changes are written.

    Returns:
        int: Number of slots that were updated
    """
    log = logger if logger is not None else logging.getLogger(__name__)

    groups = sorted(MissionSlotGroup.objects.using(using).filter(mission=mission), key=_group_sort_key)

    slots_by_group = defaultdict(list)
    slots = MissionSlot.objects.using(using).filter(slot_group__mission=mission).only(
        'uid', 'slot_group', 'order_number', 'title'
    )
    for slot in slots:
        slots_by_group[slot.slot_group_id].append(slot)

    changed = []
    order_number = 1
    for group in groups:
        for slot in sorted(slots_by_group[group.uid], key=_slot_sort_key):
            if slot.order_number != order_number:
                slot.order_number = order_number
                changed.append(slot)
            order_number += 1

    if changed:
        MissionSlot.objects.using(using).bulk_update(changed, ['order_number'])

    log.debug('recalculated slot order numbers for mission %s: %d of %d slots changed', mission.slug, len(changed), order_number - 1)
    return len(changed)
