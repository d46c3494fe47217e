"""
zkdao Package

Anonymous-vote validation and tally engine.

Core imports are lazily loaded so that importing a submodule does not
configure the whole governance stack. For direct module access, import
from submodules:

    from zkdao.governance import PrivacyVotingDAO, ProposalMode
    from zkdao.crypto import signal_hash
    from zkdao.config import load_config
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'PrivacyVotingDAO':
        from .governance import PrivacyVotingDAO
        return PrivacyVotingDAO
    elif name == 'ProposalMode':
        from .governance import ProposalMode
        return ProposalMode
    elif name == 'AuthorityCapability':
        from .governance import AuthorityCapability
        return AuthorityCapability
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'zkdao' has no attribute {name!r}")

__all__ = ['PrivacyVotingDAO', 'ProposalMode', 'AuthorityCapability', 'load_config']
