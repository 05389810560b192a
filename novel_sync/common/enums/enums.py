# =============================================================================
# File: novel_sync/common/enums/enums.py
# Description: Shared enumerations
# =============================================================================

from enum import Enum


class Collection(str, Enum):
    """MongoDB collections used by the projection store"""
    NOVELS = "novels"
    USER_CREDITS = "user_credits"
    CREDIT_HISTORIES = "credit_histories"
    RECHARGE_RECORDS = "recharge_records"
    USERS = "users"


class LedgerEventName(str, Enum):
    """Event names emitted by the novel-basic chaincode"""
    CREATE_NOVEL = "CreateNovel"
    UPDATE_NOVEL = "UpdateNovel"
    DELETE_NOVEL = "DeleteNovel"
    CREATE_USER_CREDIT = "CreateUserCredit"
    UPDATE_USER_CREDIT = "UpdateUserCredit"
    DELETE_USER_CREDIT = "DeleteUserCredit"
    CONSUME_USER_TOKEN = "ConsumeUserToken"
    CREATE_CREDIT_HISTORY = "CreateCreditHistory"


class LedgerTransaction(str, Enum):
    """Transaction names accepted by the novel-basic chaincode"""
    CREATE_NOVEL = "CreateNovel"
    UPDATE_NOVEL = "UpdateNovel"
    DELETE_NOVEL = "DeleteNovel"
    READ_NOVEL = "ReadNovel"
    GET_ALL_NOVELS = "GetAllNovels"
    CREATE_USER_CREDIT = "CreateUserCredit"
    UPDATE_USER_CREDIT = "UpdateUserCredit"
    DELETE_USER_CREDIT = "DeleteUserCredit"
    READ_USER_CREDIT = "ReadUserCredit"
    GET_ALL_USER_CREDITS = "GetAllUserCredits"
    INIT_FROM_MONGODB = "InitFromMongoDB"
