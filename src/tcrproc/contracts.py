"""Contract type names as they appear on decoded events."""

TCR_CONTRACT = "CivilTCRContract"
PLCR_CONTRACT = "CivilPLCRVotingContract"
PARAMETERIZER_CONTRACT = "ParameterizerContract"
GOVERNMENT_CONTRACT = "GovernmentContract"
NEWSROOM_CONTRACT = "NewsroomContract"
TOKEN_CONTRACT = "CVLTokenContract"
MULTISIG_CONTRACT = "MultiSigWalletContract"
MULTISIG_FACTORY_CONTRACT = "MultiSigWalletFactoryContract"

FAMILY_CONTENT = "content"
FAMILY_REGISTRY = "registry"
FAMILY_VOTING = "voting"
FAMILY_PARAMETERIZER = "parameterizer"
FAMILY_TOKEN = "token"
FAMILY_MULTISIG = "multisig"

# Fixed dispatch priority.
FAMILY_ORDER = (
    FAMILY_CONTENT,
    FAMILY_REGISTRY,
    FAMILY_VOTING,
    FAMILY_PARAMETERIZER,
    FAMILY_TOKEN,
    FAMILY_MULTISIG,
)
