from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from boxoffice.core.security import STAFF_ROLES, decode_access_token
from boxoffice.core.payment_gateways import PaymentGateway, get_payment_gateway

bearer_scheme = HTTPBearer()

def get_current_user(credentials : HTTPAuthorizationCredentials = Depends(bearer_scheme)):
    token = credentials.credentials
    payload = decode_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Invalid or expired token',
            headers={'WWW-Authenticate': 'Bearer'}
            )
    
    email = payload.get('sub')
    role = payload.get('role')
    id = payload.get('user_id')
    
    if not email:
        raise HTTPException(status_code=401, detail='Token payload invalid')
    
    return{'email':email, 'role': role, 'id': id}





def require_staff(current_user: dict = Depends(get_current_user)):
    if current_user['role'] not in STAFF_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Staff access required')
    return current_user





def require_admin(current_user: dict = Depends(get_current_user)):
    if current_user['role'] != 'admin':
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Admin access required')
    return current_user





def get_gateway() -> PaymentGateway:
    return get_payment_gateway()
