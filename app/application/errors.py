"""
Errors shared by the use cases
"""


class NotFoundError(LookupError):
    """Unknown id of a bank account, rule, event, decision path or scenario"""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} #{entity_id} not found")
