from .tenancy import Company, new_id
from .auth import Identity, Profile, Role, SessionToken
from .inventory import Product, ProductStatus, product_dict
from .communications import Message
from .security import SecurityEvent
from .provisioning import ProvisioningOperation, ProvisioningState

__all__ = [
    'Company', 'new_id',
    'Identity', 'Profile', 'Role', 'SessionToken',
    'Product', 'ProductStatus', 'product_dict',
    'Message',
    'SecurityEvent',
    'ProvisioningOperation', 'ProvisioningState',
]
