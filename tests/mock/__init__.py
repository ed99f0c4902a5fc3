# SPDX-License-Identifier: Apache-2.0
"""In-process mock starter used by the offline tests."""
