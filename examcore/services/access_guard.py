"""
Access Guard
Decides who may create, read or mutate an attempt
"""
import logging

from examcore.errors import UnauthorizedError

logger = logging.getLogger(__name__)


class RelationshipDirectory:
    """
    Guardian/student relationships, owned by an external collaborator.
    The default knows no relationships.
    """

    def is_guardian_of(self, caller_id, student_id):
        return False


class AccessGuard:

    def __init__(self, relationships=None):
        self.relationships = relationships or RelationshipDirectory()

    @staticmethod
    def require_caller(caller_id):
        """Normalize the caller id; absence is an authorization failure"""
        caller = str(caller_id).strip() if caller_id is not None else ''
        if not caller:
            raise UnauthorizedError("User ID is required")
        return caller

    def check_can_create(self, plan, caller_id):
        if caller_id not in (plan.student_id, plan.planned_by):
            logger.warning("Caller %s may not start plan %s", caller_id, plan.id)
            raise UnauthorizedError("You are not authorized to start this test")

    def check_can_mutate(self, attempt, caller_id):
        """Only the owning student changes an attempt"""
        if attempt.student_id != caller_id:
            logger.warning("Caller %s may not modify attempt %s", caller_id, attempt.id)
            raise UnauthorizedError("User does not have access to this test attempt")

    def check_can_read(self, attempt, caller_id):
        """Owner, the plan's planner, or a guardian of the owner"""
        if attempt.student_id == caller_id:
            return
        plan = attempt.test_plan
        if plan is not None and plan.planned_by == caller_id:
            return
        if self.relationships.is_guardian_of(caller_id, attempt.student_id):
            return
        logger.warning("Caller %s may not view attempt %s", caller_id, attempt.id)
        raise UnauthorizedError("You are not authorized to view this test attempt")
