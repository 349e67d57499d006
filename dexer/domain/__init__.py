"""Domain layer package.

This package contains the dexing logic:
- dex.selector: plain dexer vs optimizer, local vs remote
- dex.flags: module properties to ordered tool flags
- dex.builder: flags to build actions
- dex.postprocess: optional alignment stage
"""
