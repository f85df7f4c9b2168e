"""Before/after marketing image core: slots, geometry, compositing, AI enhancement, projects."""
