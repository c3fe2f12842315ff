import enum

class Role(str, enum.Enum):
    driver = "driver"
    supervisor = "supervisor"
    storekeeper = "storekeeper"
    manager = "manager"
    sales_rep = "salesRep"

class AcceptState(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"

class DeliveryStatus(str, enum.Enum):
    not_delivered = "not Delivered"
    delivered = "Delivered"

class DocumentKind(str, enum.Enum):
    order = "order"
    quotation = "quotation"

class ApprovalRole(str, enum.Enum):
    supervisor = "supervisor"
    storekeeper = "storekeeper"
    manager = "manager"

    @property
    def flag(self) -> str:
        return f"{self.value}accept"

class WorkflowEvent(str, enum.Enum):
    created = "CREATED"
    supervisor_accepted = "SUPERVISOR_ACCEPTED"
    storekeeper_accepted = "STOREKEEPER_ACCEPTED"
    manager_accepted = "MANAGER_ACCEPTED"
    delivered = "DELIVERED"
