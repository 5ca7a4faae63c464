# Import every model module so all tables register on Base.metadata

from erp_services.models.account_models import *  # noqa: F401,F403
from erp_services.models.finance_rule_models import *  # noqa: F401,F403
from erp_services.models.identity_models import *  # noqa: F401,F403
from erp_services.models.invoice_models import *  # noqa: F401,F403
from erp_services.models.material_models import *  # noqa: F401,F403
from erp_services.models.payable_models import *  # noqa: F401,F403
from erp_services.models.pricing_models import *  # noqa: F401,F403
from erp_services.models.project_models import *  # noqa: F401,F403
from erp_services.models.rate_models import *  # noqa: F401,F403
from erp_services.models.service_catalog_models import *  # noqa: F401,F403
from erp_services.models.vendor_models import *  # noqa: F401,F403
