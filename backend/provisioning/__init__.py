from .exceptions import ProvisioningError, AuthError, ProfileError, RollbackError
from .models import UserRole, EmploymentType, UserDetails, CreateUserRequest, build_profile_row
from .saga import Saga, SagaStep, CompensationError
from .service import UserProvisioningService, ProvisioningResult, SUCCESS_MESSAGE

__all__ = [
    'ProvisioningError', 'AuthError', 'ProfileError', 'RollbackError',
    'UserRole', 'EmploymentType', 'UserDetails', 'CreateUserRequest', 'build_profile_row',
    'Saga', 'SagaStep', 'CompensationError',
    'UserProvisioningService', 'ProvisioningResult', 'SUCCESS_MESSAGE',
]
