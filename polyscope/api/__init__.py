"""HTTP routers served by polyscope.main."""
