"""Shared test vectors for c4gh tests."""

# Test seeds (32-byte hex strings)
ALICE_SEED_HEX = "0000000000000000000000000000000000000000000000000000000000000001"
BOB_SEED_HEX = "0000000000000000000000000000000000000000000000000000000000000002"
CAROL_SEED_HEX = "0000000000000000000000000000000000000000000000000000000000000003"

# Fixed session key for deterministic parameter tests
SESSION_KEY_HEX = "000102030405060708090a0b0c0d0e0f101112131415161718191a1b1c1d1e1f"

# Size of a header holding one data encryption packet
SINGLE_PACKET_HEADER_SIZE = 16 + 108
