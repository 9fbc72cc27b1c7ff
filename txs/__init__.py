from .builder import DEFAULT_GAS_LIMIT, Fee, UnsignedTx, build, build_for_account, pack_public_key
from .gas import GasEstimate, GasEstimator, adjusted_gas
from .msgs import (
    AuthzExec,
    AuthzGrant,
    AuthzRevoke,
    BankSend,
    Coin,
    Delegate,
    ExecuteContract,
    FeeGrant,
    FeeRevoke,
    IbcTransfer,
    OpaqueMsg,
    Redelegate,
    RestakeGrant,
    TxMsg,
    Undelegate,
    Vote,
    WithdrawReward,
    grant_exec,
    restake_grant,
    restake_revoke,
    unit_transfer,
    usual_authz_grants,
    usual_authz_revokes,
)
from .sign_doc import SignDoc, SignedTx, SigningAttempt, SignState, generate, read_base64, sign, verify, write_base64
