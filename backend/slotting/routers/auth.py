from ninja import Router

from slotting.auth import generate_jwt
from slotting.permissions import PermissionService
from slotting.serializers import user_details

router = Router()


@router.post('/refresh')
def refresh_token(request):
    """Issue a fresh token for the authenticated user"""
    user = request.principal
    return {
        'token': generate_jwt(user),
        'user': user_details(user),
    }


@router.get('/account')
def get_account(request):
    """Return the authenticated user including the grants they currently hold"""
    user = request.principal
    data = user_details(user, include_private=True)
    data['permissions'] = sorted(PermissionService.for_request(request).grants)
    return {'user': data}
